"""
BrokerClient — OAuth2 client for a broker-style provider gateway.

A single broker site proxies many identity providers. Endpoint paths are
templates whose ``:provider`` placeholder is replaced per call, e.g.
``/auth/:provider/me`` → ``/auth/github/me``.
"""

from __future__ import annotations

import logging
from functools import cached_property
from typing import Any, Dict, Optional, Union

import httpx

from gateway.access_token import AccessToken
from gateway.errors import (
    CsrfValidationError,
    ProviderError,
    TransportError,
    UnhandledStatusError,
)
from gateway.exchange import TokenExchange
from gateway.options import PROVIDER_PLACEHOLDER, ClientOptions
from gateway.response import BrokerResponse, StatusClass
from gateway.strategies import Assertion, AuthCode, ClientCredentials, Implicit, Password

logger = logging.getLogger(__name__)

Body = Union[Dict[str, Any], str, bytes, None]


class BrokerClient:
    """Builds broker URLs, runs the request pipeline and mints access tokens."""

    def __init__(
        self,
        options: ClientOptions,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.options = options
        self._http = http_client

    def __repr__(self) -> str:
        return f"<BrokerClient id={self.id!r} site={self.site!r}>"

    @property
    def id(self) -> str:
        return self.options.client_id

    @property
    def secret(self) -> str:
        return self.options.client_secret

    @property
    def site(self) -> str:
        return self.options.site

    # ── URLs ────────────────────────────────────────────────────────────

    def build_url(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
    ) -> str:
        """Absolute URL for ``path`` with the provider placeholder filled and ``params`` appended."""
        if provider is not None:
            path = path.replace(PROVIDER_PLACEHOLDER, provider, 1)
        if path.startswith(("http://", "https://")):
            url = httpx.URL(path)
        else:
            url = httpx.URL(self.site + "/" + path.lstrip("/"))
        if params:
            url = url.copy_merge_params(params)
        return str(url)

    def authorize_url(self, provider: str, params: Optional[Dict[str, Any]] = None) -> str:
        """The broker's authorize endpoint for ``provider``."""
        return self.build_url(self.options.authorize_path, params, provider)

    def profile_url(self, provider: str, params: Optional[Dict[str, Any]] = None) -> str:
        """The broker's "me" endpoint for ``provider``."""
        return self.build_url(self.options.profile_path, params, provider)

    @property
    def token_url(self) -> str:
        return self.build_url(self.options.token_path)

    # ── request pipeline ────────────────────────────────────────────────

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http is not None:
            return await self._http.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.options.timeout) as client:
            return await client.request(method, url, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Body = None,
        headers: Optional[Dict[str, str]] = None,
        raise_on_error: Optional[bool] = None,
        provider: Optional[str] = None,
    ) -> BrokerResponse:
        """
        Make a request relative to the broker site and decode the JSON answer.

        Redirects (301/302/303/307) are followed up to ``max_redirects``
        times; past the budget the redirect response itself is returned.
        A 303 switches to GET and drops the body. 4xx/5xx responses raise
        ``ProviderError`` unless ``raise_on_error`` (or the client default)
        is false, in which case the error is attached to the response.

        Raises
        ------
        TransportError       – no response was received
        DecodeError          – the body is not a JSON object
        ProviderError        – 4xx/5xx and raising is enabled
        UnhandledStatusError – any status outside the known ranges
        """
        method = method.upper()
        url = self.build_url(path, provider=provider)
        should_raise = self.options.raise_on_error if raise_on_error is None else raise_on_error
        redirect_count = 0

        while True:
            kwargs: Dict[str, Any] = {"params": params, "headers": headers}
            if isinstance(body, dict):
                kwargs["data"] = body
            elif body is not None:
                kwargs["content"] = body

            try:
                raw = await self._send(method, url, **kwargs)
            except httpx.RequestError as exc:
                logger.error("Broker request %s %s failed: %s", method, url, exc)
                raise TransportError(f"Request to {url} failed: {exc}") from exc

            response = BrokerResponse.from_httpx(raw)
            logger.debug("%s %s -> %d", method, response.url or url, response.status)
            outcome = response.status_class

            if outcome is StatusClass.REDIRECT:
                redirect_count += 1
                if redirect_count > self.options.max_redirects:
                    logger.warning(
                        "Redirect budget of %d exhausted at %s; returning redirect as-is",
                        self.options.max_redirects,
                        response.url or url,
                    )
                    return response
                location = response.location
                if not location:
                    logger.warning("HTTP %d without a location header", response.status)
                    return response
                if response.status == 303:
                    method = "GET"
                    body = None
                url = str(httpx.URL(response.url or url).join(location))
                logger.debug("Following %d redirect to %s", response.status, url)
                continue

            if outcome is StatusClass.SUCCESS:
                return response

            if outcome is StatusClass.ERROR:
                error = ProviderError(response)
                logger.warning("Broker error on %s %s: %s", method, url, error)
                if should_raise:
                    raise error
                response.error = error
                return response

            raise UnhandledStatusError(response)

    # ── tokens ──────────────────────────────────────────────────────────

    async def get_token(
        self,
        params: Dict[str, Any],
        access_token_opts: Optional[Dict[str, Any]] = None,
        *,
        expected_state: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> AccessToken:
        """
        Request a token from the token endpoint.

        The ``state`` in the response must equal ``expected_state``; a
        missing state only matches ``None``.
        """
        exchange = TokenExchange(
            self,
            params,
            expected_state=expected_state,
            access_token_opts=access_token_opts,
            provider=provider,
        )
        return await exchange.run()

    async def exchange_authorization_code(
        self,
        provider: str,
        code: str,
        csrf_state: Optional[str],
        expected_state: str,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> AccessToken:
        """
        Trade an authorization ``code`` for an ``AccessToken``.

        ``csrf_state`` is the state the callback arrived with and
        ``expected_state`` the one issued at authorize time; both the
        callback and the token response must carry the expected value.
        """
        if csrf_state is not None and csrf_state != expected_state:
            logger.warning("CSRF state mismatch on %s callback", provider)
            raise CsrfValidationError(expected_state, csrf_state)
        return await self.auth_code.get_token(
            code,
            extra_params,
            expected_state=expected_state,
            provider=provider,
        )

    # ── grant strategies ────────────────────────────────────────────────

    @cached_property
    def auth_code(self) -> AuthCode:
        return AuthCode(self)

    @cached_property
    def implicit(self) -> Implicit:
        return Implicit(self)

    @cached_property
    def password(self) -> Password:
        return Password(self)

    @cached_property
    def client_credentials(self) -> ClientCredentials:
        return ClientCredentials(self)

    @cached_property
    def assertion(self) -> Assertion:
        return Assertion(self)


def new_client(
    client_id: str,
    client_secret: str,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    **options: Any,
) -> BrokerClient:
    """
    Build a ``BrokerClient``.

    ``options`` are the fields of ``ClientOptions`` (``site``,
    ``authorize_path``, ``token_path``, ``profile_path``,
    ``token_method``, ``max_redirects``, ``raise_on_error``,
    ``redirect_uri``, ``timeout``); unknown names are rejected.
    """
    opts = ClientOptions(client_id=client_id, client_secret=client_secret, **options)
    return BrokerClient(opts, http_client=http_client)
