"""
BrokerResponse — the normalized shape every pipeline call returns.

The broker always answers with JSON, so the pipeline decodes every body
up front and exposes ``status`` and ``headers`` next to the decoded
fields for uniform downstream access.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from gateway.errors import DecodeError

REDIRECT_STATUSES = frozenset({301, 302, 303, 307})

# nginx "client closed request"; never a genuine provider answer
_CLIENT_CLOSED_REQUEST = 499


class StatusClass(str, Enum):
    SUCCESS = "success"
    REDIRECT = "redirect"
    ERROR = "error"
    UNHANDLED = "unhandled"


def classify_status(status: int) -> StatusClass:
    """Map an HTTP status onto the pipeline's four outcomes."""
    if status in REDIRECT_STATUSES:
        return StatusClass.REDIRECT
    if status == _CLIENT_CLOSED_REQUEST:
        return StatusClass.UNHANDLED
    if 200 <= status <= 399:
        return StatusClass.SUCCESS
    if 400 <= status <= 599:
        return StatusClass.ERROR
    return StatusClass.UNHANDLED


class BrokerResponse(BaseModel):
    """Decoded broker response; ``error`` is set when the caller opted out of raising."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)
    url: str = ""
    error: Optional[Any] = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "BrokerResponse":
        """Decode an ``httpx.Response``; empty bodies decode to ``{}``."""
        if response.content.strip():
            try:
                body = response.json()
            except ValueError as exc:
                raise DecodeError(
                    f"Response from {response.request.url} is not valid JSON: {exc}"
                ) from exc
        else:
            body = {}

        if not isinstance(body, dict):
            raise DecodeError(
                f"Response from {response.request.url} is JSON "
                f"{type(body).__name__}, expected an object"
            )

        return cls(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=body,
            url=str(response.request.url),
        )

    # ── dict-style access to the decoded body ──────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        return self.body.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.body[key]

    def __contains__(self, key: object) -> bool:
        return key in self.body

    # ── convenience ─────────────────────────────────────────────────────

    @property
    def status_class(self) -> StatusClass:
        return classify_status(self.status)

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")

    @property
    def data(self) -> Dict[str, Any]:
        """The broker's ``data`` envelope, or ``{}`` when absent."""
        data = self.body.get("data")
        return data if isinstance(data, dict) else {}

    def parsed(self) -> Dict[str, Any]:
        """Decoded body with ``status`` and ``headers`` injected."""
        merged = dict(self.body)
        merged["status"] = self.status
        merged["headers"] = dict(self.headers)
        return merged
