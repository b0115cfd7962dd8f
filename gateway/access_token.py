"""
AccessToken — credentials minted by the token endpoint.

Instances are frozen; ``refresh()`` returns a new token instead of
mutating the old one.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

from gateway.errors import DecodeError, OAuthError

if TYPE_CHECKING:
    from gateway.client import BrokerClient
    from gateway.response import BrokerResponse

logger = logging.getLogger(__name__)

# keys consumed by from_dict or injected by the pipeline; everything else lands in ``params``
_RESERVED_KEYS = {
    "access_token", "token", "oauth_token", "oauth_token_secret", "refresh_token",
    "expires_in", "expires", "expires_at", "provider", "state", "status", "headers",
}


def _as_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError) as exc:
        raise DecodeError(f"Token field {field!r} is not a number: {value!r}") from exc


def _as_timestamp(value: Any, field: str) -> Optional[int]:
    """Epoch seconds from a number or an ISO-8601 string (naive means UTC)."""
    if not isinstance(value, str) or not value.strip():
        return _as_int(value, field)
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        pass
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise DecodeError(f"Token field {field!r} is not a timestamp: {value!r}") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class AccessToken(BaseModel):
    """Bearer / OAuth1 credentials bound to the client that minted them."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    client: Any = Field(exclude=True, repr=False)
    token: str = ""
    oauth_token: str = ""
    oauth_token_secret: str = ""
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    provider: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, client: "BrokerClient", data: Dict[str, Any]) -> "AccessToken":
        """Build a token from a decoded token-endpoint response."""
        token = data.get("access_token") or data.get("token") or ""
        expires_in = _as_int(data.get("expires_in", data.get("expires")), "expires_in")
        expires_at = _as_timestamp(data.get("expires_at"), "expires_at")
        if expires_at is None and expires_in is not None:
            expires_at = int(time.time()) + expires_in

        return cls(
            client=client,
            token=token,
            oauth_token=data.get("oauth_token") or "",
            oauth_token_secret=data.get("oauth_token_secret") or "",
            refresh_token=data.get("refresh_token") or None,
            expires_in=expires_in,
            expires_at=expires_at,
            provider=data.get("provider"),
            params={k: v for k, v in data.items() if k not in _RESERVED_KEYS},
        )

    # ── expiry ──────────────────────────────────────────────────────────

    def expires(self) -> bool:
        """True when the token carries an expiry timestamp."""
        return self.expires_at is not None

    is_expiring = expires

    def is_expired(self) -> bool:
        return self.expires() and self.expires_at <= time.time()

    # ── requests with this token ────────────────────────────────────────

    def headers(self) -> Dict[str, str]:
        """Authorization headers for broker requests made with this token."""
        headers: Dict[str, str] = {}
        broker: Dict[str, str] = {"k": self.client.id}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
            broker["access_token"] = self.token
        elif self.oauth_token and self.oauth_token_secret:
            broker["oauth_token"] = self.oauth_token
            broker["oauth_token_secret"] = self.oauth_token_secret
        if len(broker) > 1:
            headers["oauthio"] = urlencode(broker)
        return headers

    async def request(self, method: str, path: str, **opts: Any) -> "BrokerResponse":
        """Issue a pipeline request authenticated with this token."""
        headers = self.headers()
        headers.update(opts.pop("headers", None) or {})
        return await self.client.request(method, path, headers=headers, **opts)

    async def get(self, path: str, **opts: Any) -> "BrokerResponse":
        return await self.request("GET", path, **opts)

    async def fetch_profile(self, provider: Optional[str] = None) -> "BrokerResponse":
        """GET the broker's profile endpoint for ``provider``."""
        provider = provider or self.provider
        if not provider:
            raise ValueError("fetch_profile needs a provider name")
        logger.debug("Fetching %s profile", provider)
        return await self.get(self.client.options.profile_path, provider=provider)

    # ── refresh ─────────────────────────────────────────────────────────

    async def refresh(self, params: Optional[Dict[str, Any]] = None) -> "AccessToken":
        """Exchange the refresh token for a new ``AccessToken``."""
        if not self.refresh_token:
            raise OAuthError("A refresh_token is not available")

        token_params = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
            "client_id": self.client.id,
            "client_secret": self.client.secret,
        }
        token_params.update(params or {})
        new_token = await self.client.get_token(token_params, provider=self.provider)
        if not new_token.refresh_token:
            new_token = new_token.model_copy(update={"refresh_token": self.refresh_token})
        return new_token

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.params)
        data.update({
            "access_token": self.token,
            "oauth_token": self.oauth_token,
            "oauth_token_secret": self.oauth_token_secret,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        })
        if self.provider:
            data["provider"] = self.provider
        return data
