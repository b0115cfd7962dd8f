"""
Signed pending-state cookie.

The pending authorization is serialized as base64 JSON and signed with
HMAC-SHA256. The secret is loaded from ``config.oauth_state_secret``
(env var: ``OAUTH_STATE_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Optional

from auth.strategy import PendingAuthorization
from config.settings import config


def _sign(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def sign_pending(
    pending: PendingAuthorization,
    secret: Optional[str] = None,
    ttl: Optional[int] = None,
) -> str:
    """Serialize ``pending`` with an expiry and signature."""
    secret = secret or config.oauth_state_secret
    ttl = config.oauth_state_ttl if ttl is None else ttl
    payload = pending.model_dump()
    payload["exp"] = int(time.time()) + ttl
    raw = json.dumps(payload, sort_keys=True).encode()
    return urlsafe_b64encode(raw).decode().rstrip("=") + "." + _sign(raw, secret)


def verify_pending(value: str, secret: Optional[str] = None) -> PendingAuthorization:
    """
    Verify a signed cookie value and return the pending authorization.

    Raises ``ValueError`` on bad format, bad signature or expiry.
    """
    secret = secret or config.oauth_state_secret
    parts = value.split(".", 1)
    if len(parts) != 2:
        raise ValueError("bad format")
    try:
        encoded = parts[0] + "=" * (-len(parts[0]) % 4)
        raw = urlsafe_b64decode(encoded.encode())
    except ValueError as exc:
        raise ValueError("bad encoding") from exc
    if not hmac.compare_digest(parts[1].encode(), _sign(raw, secret).encode()):
        raise ValueError("bad signature")
    payload = json.loads(raw)
    if payload.pop("exp", 0) < time.time():
        raise ValueError("state expired")
    return PendingAuthorization(**payload)
