"""
Tests for the token exchange engine (authorization code flow).
"""

from urllib.parse import parse_qs

import httpx
import pytest

from gateway.errors import CsrfValidationError, DecodeError, ProviderError, TransportError
from gateway.exchange import ExchangeState, TokenExchange


def _token_endpoint(calls, payload, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status, json=payload)

    return handler


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestAuthorizationCodeExchange:
    @pytest.mark.asyncio
    async def test_matching_state_yields_token(self, make_client):
        calls = []
        client = make_client(
            _token_endpoint(calls, {"access_token": "T1", "state": "xyz", "expires_in": 3600}),
            redirect_uri="https://app.test/auth/example/callback",
        )

        token = await client.exchange_authorization_code("example", "abc", "xyz", "xyz")

        assert token.token == "T1"
        assert token.expires() is True
        assert token.provider == "example"
        assert token.client is client

        request = calls[0]
        assert request.method == "POST"
        assert request.url.path == "/auth/access_token"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert _form(request) == {
            "grant_type": "authorization_code",
            "code": "abc",
            "redirect_uri": "https://app.test/auth/example/callback",
            "client_id": "public-key",
            "client_secret": "secret-key",
        }

    @pytest.mark.asyncio
    async def test_mismatched_response_state_raises(self, make_client):
        calls = []
        client = make_client(
            _token_endpoint(calls, {"access_token": "T1", "state": "wrong", "expires_in": 3600})
        )
        with pytest.raises(CsrfValidationError) as exc_info:
            await client.exchange_authorization_code("example", "abc", "xyz", "xyz")
        assert exc_info.value.expected == "xyz"
        assert exc_info.value.received == "wrong"

    @pytest.mark.asyncio
    async def test_missing_response_state_raises(self, make_client):
        client = make_client(_token_endpoint([], {"access_token": "T1"}))
        with pytest.raises(CsrfValidationError):
            await client.exchange_authorization_code("example", "abc", "xyz", "xyz")

    @pytest.mark.asyncio
    async def test_mismatched_callback_state_sends_nothing(self, make_client):
        calls = []
        client = make_client(_token_endpoint(calls, {"access_token": "T1", "state": "xyz"}))
        with pytest.raises(CsrfValidationError):
            await client.exchange_authorization_code("example", "abc", "forged", "xyz")
        assert calls == []

    @pytest.mark.asyncio
    async def test_extra_params_are_sent(self, make_client):
        calls = []
        client = make_client(_token_endpoint(calls, {"access_token": "T1", "state": "s"}))
        await client.exchange_authorization_code("example", "abc", "s", "s", {"scope": "email"})
        assert _form(calls[0])["scope"] == "email"

    @pytest.mark.asyncio
    async def test_get_method_uses_query_params(self, make_client):
        calls = []
        client = make_client(
            _token_endpoint(calls, {"access_token": "T1", "state": "s"}),
            token_method="get",
        )
        await client.exchange_authorization_code("example", "abc", "s", "s")
        request = calls[0]
        assert request.method == "GET"
        assert request.url.params["code"] == "abc"
        assert request.url.params["grant_type"] == "authorization_code"
        assert request.content == b""

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, make_client):
        client = make_client(_token_endpoint([], {"error": "invalid_grant"}, status=400))
        with pytest.raises(ProviderError):
            await client.exchange_authorization_code("example", "abc", "s", "s")

    @pytest.mark.asyncio
    async def test_provider_error_propagates_when_not_raising(self, make_client):
        client = make_client(
            _token_endpoint([], {"error": "invalid_grant", "state": "s"}, status=400),
            raise_on_error=False,
        )
        with pytest.raises(ProviderError):
            await client.exchange_authorization_code("example", "abc", "s", "s")


class TestTokenExchangeStates:
    @pytest.mark.asyncio
    async def test_success_path(self, make_client):
        client = make_client(_token_endpoint([], {"access_token": "T1", "state": "s"}))
        exchange = TokenExchange(client, {"code": "abc"}, expected_state="s")
        assert exchange.state is ExchangeState.UNSTARTED
        token = await exchange.run()
        assert exchange.state is ExchangeState.TOKEN_CONSTRUCTED
        assert exchange.token is token

    @pytest.mark.asyncio
    async def test_validation_failed(self, make_client):
        client = make_client(_token_endpoint([], {"access_token": "T1", "state": "nope"}))
        exchange = TokenExchange(client, {"code": "abc"}, expected_state="s")
        with pytest.raises(CsrfValidationError):
            await exchange.run()
        assert exchange.state is ExchangeState.VALIDATION_FAILED
        assert exchange.token is None

    @pytest.mark.asyncio
    async def test_transport_failed(self, make_client):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = make_client(handler)
        exchange = TokenExchange(client, {"code": "abc"}, expected_state="s")
        with pytest.raises(TransportError):
            await exchange.run()
        assert exchange.state is ExchangeState.TRANSPORT_FAILED

    @pytest.mark.asyncio
    async def test_provider_error_returned(self, make_client):
        client = make_client(_token_endpoint([], {}, status=503))
        exchange = TokenExchange(client, {"code": "abc"})
        with pytest.raises(ProviderError):
            await exchange.run()
        assert exchange.state is ExchangeState.PROVIDER_ERROR_RETURNED

    @pytest.mark.asyncio
    async def test_iso_expiry_yields_token(self, make_client):
        client = make_client(
            _token_endpoint([], {"access_token": "T1", "state": "s", "expires_at": "2030-01-01T00:00:00Z"})
        )
        token = await client.exchange_authorization_code("example", "abc", "s", "s")
        assert token.expires_at == 1893456000

    @pytest.mark.asyncio
    async def test_malformed_expiry_ends_exchange(self, make_client):
        client = make_client(
            _token_endpoint([], {"access_token": "T1", "state": "s", "expires_in": "soon"})
        )
        exchange = TokenExchange(client, {"code": "abc"}, expected_state="s")
        with pytest.raises(DecodeError):
            await exchange.run()
        assert exchange.state is ExchangeState.TRANSPORT_FAILED
        assert exchange.token is None

    @pytest.mark.asyncio
    async def test_runs_only_once(self, make_client):
        client = make_client(_token_endpoint([], {"access_token": "T1"}))
        exchange = TokenExchange(client, {})
        await exchange.run()
        with pytest.raises(RuntimeError):
            await exchange.run()

    def test_headers_param_is_lifted_into_request_headers(self, make_client):
        client = make_client(lambda r: httpx.Response(200))
        exchange = TokenExchange(client, {"code": "abc", "headers": {"X-Trace": "1"}})
        opts = exchange.build_request()
        assert opts["body"] == {"code": "abc"}
        assert opts["headers"] == {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Trace": "1",
        }
        assert exchange.state is ExchangeState.PARAMS_BUILT

    @pytest.mark.asyncio
    async def test_access_token_opts_override_response(self, make_client):
        client = make_client(_token_endpoint([], {"access_token": "T1", "provider": "a"}))
        token = await client.get_token({}, {"provider": "b"})
        assert token.provider == "b"
