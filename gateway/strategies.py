"""
OAuth2 grant strategies.

Each strategy only assembles grant-specific parameters and hands them to
``BrokerClient.get_token``; the token endpoint round-trip is shared.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from gateway.access_token import AccessToken
    from gateway.client import BrokerClient

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class Strategy:
    def __init__(self, client: "BrokerClient") -> None:
        self.client = client

    def client_params(self) -> Dict[str, str]:
        return {"client_id": self.client.id, "client_secret": self.client.secret}

    def authorize_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        merged = {"client_id": self.client.id}
        merged.update(params or {})
        return merged

    def authorize_url(self, provider: str, params: Optional[Dict[str, Any]] = None) -> str:
        return self.client.authorize_url(provider, self.authorize_params(params))

    async def _request_token(
        self,
        grant_params: Dict[str, Any],
        params: Optional[Dict[str, Any]],
        **kwargs: Any,
    ) -> "AccessToken":
        token_params = dict(grant_params)
        token_params.update(self.client_params())
        token_params.update(params or {})
        return await self.client.get_token(token_params, **kwargs)


class AuthCode(Strategy):
    """Authorization Code grant (RFC 6749 §4.1)."""

    def authorize_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        merged = {"response_type": "code"}
        merged.update(super().authorize_params(params))
        return merged

    def token_params(self, code: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        grant: Dict[str, Any] = {"grant_type": "authorization_code", "code": code}
        redirect_uri = (params or {}).get("redirect_uri") or self.client.options.redirect_uri
        if redirect_uri:
            grant["redirect_uri"] = redirect_uri
        return grant

    async def get_token(
        self,
        code: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        expected_state: Optional[str] = None,
        provider: Optional[str] = None,
        access_token_opts: Optional[Dict[str, Any]] = None,
    ) -> "AccessToken":
        return await self._request_token(
            self.token_params(code, params),
            params,
            expected_state=expected_state,
            provider=provider,
            access_token_opts=access_token_opts,
        )


class Implicit(Strategy):
    """Implicit grant (RFC 6749 §4.2); the token arrives in the redirect fragment."""

    def authorize_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        merged = {"response_type": "token"}
        merged.update(super().authorize_params(params))
        return merged

    async def get_token(self, *args: Any, **kwargs: Any) -> "AccessToken":
        raise NotImplementedError("The token is accessed differently in this strategy")


class Password(Strategy):
    """Resource Owner Password Credentials grant (RFC 6749 §4.3)."""

    async def get_token(
        self,
        username: str,
        password: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> "AccessToken":
        grant = {"grant_type": "password", "username": username, "password": password}
        return await self._request_token(grant, params, **kwargs)


class ClientCredentials(Strategy):
    """Client Credentials grant (RFC 6749 §4.4)."""

    async def get_token(self, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "AccessToken":
        return await self._request_token({"grant_type": "client_credentials"}, params, **kwargs)


class Assertion(Strategy):
    """JWT bearer assertion grant (RFC 7523); the caller signs the assertion."""

    async def get_token(
        self,
        assertion: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> "AccessToken":
        grant = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        return await self._request_token(grant, params, **kwargs)
