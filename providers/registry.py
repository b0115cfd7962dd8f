"""
NormalizerRegistry — resolves a provider name to its normalizer class.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from gateway.access_token import AccessToken
from providers.base import BaseNormalizer
from providers.oauthio import OAuthioNormalizer

logger = logging.getLogger(__name__)

DEFAULT_VARIANT = OAuthioNormalizer.name


class NormalizerRegistry:
    """Singleton lookup table of normalizer variants keyed by provider name."""

    _instance: Optional["NormalizerRegistry"] = None

    def __new__(cls) -> "NormalizerRegistry":
        if cls._instance is None:
            inst = super().__new__(cls)
            inst._variants: Dict[str, Type[BaseNormalizer]] = {
                DEFAULT_VARIANT: OAuthioNormalizer,
            }
            cls._instance = inst
        return cls._instance

    def register(self, provider: str, normalizer_cls: Type[BaseNormalizer]) -> None:
        if not issubclass(normalizer_cls, BaseNormalizer):
            raise TypeError(f"{normalizer_cls!r} is not a BaseNormalizer")
        self._variants[provider] = normalizer_cls
        logger.info("Normalizer registered: %s -> %s", provider, normalizer_cls.__name__)

    def get(self, provider: str) -> Type[BaseNormalizer]:
        """Variant for ``provider``, or the broker passthrough when none is registered."""
        return self._variants.get(provider, self._variants[DEFAULT_VARIANT])

    def build(
        self,
        provider: str,
        access_token: AccessToken,
        options: Optional[Dict[str, Any]] = None,
    ) -> BaseNormalizer:
        """Instantiate a fresh, exchange-local normalizer."""
        return self.get(provider)(access_token, provider, options)

    def list_providers(self) -> List[str]:
        return sorted(self._variants)

    # ── reset (for tests) ──────────────────────────────────────────────

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton — only useful in test teardown."""
        cls._instance = None
