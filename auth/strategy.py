"""
BrokerStrategy — the request/callback contract a host auth framework drives.

1. ``request_phase``  – mint a CSRF state, park it in the caller's session,
                        return the broker authorize URL to redirect to.
2. ``callback_phase`` – consume the parked state, exchange the code and
                        normalize the profile into an ``Identity``.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Mapping, MutableMapping, Optional

from pydantic import BaseModel, ConfigDict

from gateway.client import BrokerClient
from gateway.errors import CallbackError, CsrfValidationError
from providers.models import Identity
from providers.registry import NormalizerRegistry

logger = logging.getLogger(__name__)

SESSION_KEY = "oauthio.pending"


class PendingAuthorization(BaseModel):
    """State issued at authorize time, validated once at callback time."""

    model_config = ConfigDict(frozen=True)

    expected_state: str
    provider: str


class BrokerStrategy:
    """Login strategy backed by a ``BrokerClient``."""

    def __init__(
        self,
        client: BrokerClient,
        registry: Optional[NormalizerRegistry] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client = client
        self.registry = registry or NormalizerRegistry()
        self.options = options or {}

    def request_phase(
        self,
        provider: str,
        session: MutableMapping[str, Any],
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Store a fresh ``PendingAuthorization`` in ``session`` and return the authorize URL."""
        pending = PendingAuthorization(
            expected_state=secrets.token_urlsafe(24),
            provider=provider,
        )
        session[SESSION_KEY] = pending.model_dump()

        authorize_params = dict(params or {})
        authorize_params["state"] = pending.expected_state
        if self.client.options.redirect_uri and "redirect_uri" not in authorize_params:
            authorize_params["redirect_uri"] = self.client.options.redirect_uri

        logger.info("Starting %s login", provider)
        return self.client.auth_code.authorize_url(provider, authorize_params)

    async def callback_phase(
        self,
        provider: str,
        params: Mapping[str, Any],
        session: MutableMapping[str, Any],
        token_params: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        """
        Handle the broker's redirect back and return the canonical identity.

        The pending state is removed from ``session`` before anything else,
        so a callback can be attempted only once per login.

        Raises
        ------
        CallbackError       – the broker reported an error or sent no code
        CsrfValidationError – no pending login, or state/provider mismatch
        """
        stored = session.pop(SESSION_KEY, None)

        if params.get("error"):
            raise CallbackError(
                params["error"],
                params.get("error_description") or params.get("error_reason"),
                params.get("error_uri"),
            )

        received = params.get("state")
        if stored is None:
            logger.warning("Callback for %s without a pending login", provider)
            raise CsrfValidationError(None, received)
        pending = PendingAuthorization(**stored)
        if not received or pending.provider != provider or received != pending.expected_state:
            logger.warning("CSRF state mismatch on %s callback", provider)
            raise CsrfValidationError(pending.expected_state, received)

        code = params.get("code")
        if not code:
            raise CallbackError("invalid_request", "missing authorization code")

        token = await self.client.exchange_authorization_code(
            provider,
            code,
            received,
            pending.expected_state,
            token_params,
        )
        normalizer = self.registry.build(provider, token, self.options)
        identity = await normalizer.identity()
        logger.info("Authenticated %s user %s", provider, identity.uid)
        return identity
