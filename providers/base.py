"""
BaseNormalizer — abstract interface for per-provider profile normalization.

Every identity provider behind the broker gets a subclass that maps the
provider's raw profile payload onto the canonical identity shape. A
normalizer is bound to one ``AccessToken`` and lives for one login.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from gateway.access_token import AccessToken
from providers.models import Identity

logger = logging.getLogger(__name__)


class BaseNormalizer(ABC):
    """Abstract base for all provider normalizers."""

    #: registry key; the provider slug this variant handles
    name: str = ""

    def __init__(
        self,
        access_token: AccessToken,
        provider: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.access_token = access_token
        self.provider = provider
        self.options = options or {}
        self._profile: Optional[Dict[str, Any]] = None

    # ── Profile payload ─────────────────────────────────────────────────

    async def profile(self) -> Dict[str, Any]:
        """The broker's ``data`` envelope, fetched once and cached."""
        if self._profile is None:
            response = await self.access_token.fetch_profile(self.provider)
            self._profile = response.data
            logger.debug("Cached %s profile payload", self.provider)
        return self._profile

    # ── Capabilities ────────────────────────────────────────────────────

    @abstractmethod
    async def uid(self) -> str:
        """Provider-assigned identifier of the authenticated user."""
        ...

    @abstractmethod
    async def profile_info(self) -> Dict[str, Any]:
        """Canonical ``info`` map; must be pruned."""
        ...

    async def extra(self) -> Dict[str, Any]:
        """Provider-specific extras; must be pruned."""
        return {}

    def skip_info(self) -> bool:
        """Return True to leave the raw payload out of ``extra``."""
        return False

    def credentials(self) -> Dict[str, Any]:
        """
        Credential map derived from the bound access token.

        ``oauth_token``/``oauth_token_secret`` appear together or not at
        all; ``refresh_token`` and ``expires_at`` only for expiring tokens.
        """
        token = self.access_token
        creds: Dict[str, Any] = {}
        if token.token:
            creds["token"] = token.token
        if token.oauth_token and token.oauth_token_secret:
            creds["oauth_token"] = token.oauth_token
            creds["oauth_token_secret"] = token.oauth_token_secret
        if token.expires() and token.refresh_token:
            creds["refresh_token"] = token.refresh_token
        if token.expires():
            creds["expires_at"] = token.expires_at
        creds["expires"] = token.expires()
        return creds

    async def identity(self) -> Identity:
        """Assemble the canonical identity record."""
        return Identity(
            provider=self.provider,
            uid=await self.uid(),
            info=await self.profile_info(),
            credentials=self.credentials(),
            extra=await self.extra(),
        )
