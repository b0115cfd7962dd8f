"""
Canonical identity record handed back to the host authentication framework.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field


def prune(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Drop keys whose value is ``None`` or empty, recursing into nested dicts.

    ``False`` and ``0`` are kept. Pruning a pruned dict returns an equal dict.
    """
    pruned: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = prune(value)
        if value is None:
            continue
        if isinstance(value, (str, bytes, list, tuple, set, dict)) and not value:
            continue
        pruned[key] = value
    return pruned


class Identity(BaseModel):
    provider: str
    uid: Optional[str] = None
    info: Dict[str, Any] = Field(default_factory=dict)
    credentials: Dict[str, Any] = Field(default_factory=dict)
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """The canonical ``{provider, uid, info, credentials, extra}`` shape."""
        return {
            "provider": self.provider,
            "uid": self.uid,
            "info": prune(self.info),
            "credentials": dict(self.credentials),
            "extra": prune(self.extra),
        }
