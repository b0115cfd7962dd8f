"""
ClientOptions — every option the broker client understands, with defaults.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVIDER_PLACEHOLDER = ":provider"


class ClientOptions(BaseModel):
    """Immutable configuration of a ``BrokerClient``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    site: str
    authorize_path: str = "/auth/:provider"
    token_path: str = "/auth/access_token"
    profile_path: str = "/auth/:provider/me"
    token_method: str = "POST"  # "GET" | "POST"
    max_redirects: int = Field(5, ge=0)
    raise_on_error: bool = True
    redirect_uri: Optional[str] = None
    timeout: float = Field(30.0, gt=0)

    @field_validator("site")
    @classmethod
    def _absolute_site(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("site must be an absolute http(s) URL")
        return value.rstrip("/")

    @field_validator("token_method")
    @classmethod
    def _known_method(cls, value: str) -> str:
        method = value.upper()
        if method not in ("GET", "POST"):
            raise ValueError("token_method must be GET or POST")
        return method

    @classmethod
    def from_settings(cls, settings, **overrides) -> "ClientOptions":
        """Build options from the application ``Settings``."""
        values = {
            "client_id": settings.oauthio_public_key,
            "client_secret": settings.oauthio_secret_key,
            "site": settings.oauthio_site,
            "authorize_path": settings.oauthio_authorize_path,
            "token_path": settings.oauthio_token_path,
            "profile_path": settings.oauthio_profile_path,
            "token_method": settings.oauthio_token_method,
            "max_redirects": settings.oauthio_max_redirects,
            "raise_on_error": settings.oauthio_raise_on_error,
            "timeout": settings.oauthio_timeout,
        }
        values.update(overrides)
        return cls(**values)
