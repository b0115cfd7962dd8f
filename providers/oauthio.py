"""
OAuthioNormalizer — passthrough variant for the broker's generic payload.

The broker's "me" endpoint answers with::

    {"data": {"name": ..., "alias": ..., "bio": ..., "avatar": ...,
              "raw": {<provider-native fields>}}}
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from gateway.errors import MissingFieldError
from providers.base import BaseNormalizer
from providers.models import prune

INFO_FIELDS = ("name", "alias", "bio", "avatar")


class OAuthioNormalizer(BaseNormalizer):
    """Reference normalizer used for any provider without a dedicated variant."""

    name = "oauthio"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._raw_info: Optional[Dict[str, Any]] = None

    async def raw_info(self) -> Dict[str, Any]:
        """Provider-native fields under ``data.raw``, cached."""
        if self._raw_info is None:
            raw = (await self.profile()).get("raw")
            self._raw_info = raw if isinstance(raw, dict) else {}
        return self._raw_info

    async def uid(self) -> str:
        uid = (await self.raw_info()).get("id")
        if uid is None or uid == "":
            raise MissingFieldError("raw.id")
        return str(uid)

    async def profile_info(self) -> Dict[str, Any]:
        # broker-normalized fields win; fall back to the provider-native ones
        data = await self.profile()
        raw = await self.raw_info()
        return prune({
            field: data[field] if data.get(field) is not None else raw.get(field)
            for field in INFO_FIELDS
        })

    async def extra(self) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        if not self.skip_info():
            extra["raw_info"] = await self.raw_info()
        return prune(extra)
