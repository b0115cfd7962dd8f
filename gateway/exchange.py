"""
Token exchange engine.

A ``TokenExchange`` drives one call to the broker's token endpoint:

    UNSTARTED → PARAMS_BUILT → REQUEST_SENT → VALIDATED → TOKEN_CONSTRUCTED
                                           ↘ VALIDATION_FAILED
                                           ↘ TRANSPORT_FAILED
                                           ↘ PROVIDER_ERROR_RETURNED

Instances are exchange-local and run exactly once.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from gateway.access_token import AccessToken
from gateway.errors import (
    CsrfValidationError,
    DecodeError,
    ProviderError,
    TransportError,
    UnhandledStatusError,
)
from gateway.response import BrokerResponse

if TYPE_CHECKING:
    from gateway.client import BrokerClient

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class ExchangeState(str, Enum):
    UNSTARTED = "unstarted"
    PARAMS_BUILT = "params_built"
    REQUEST_SENT = "request_sent"
    VALIDATED = "validated"
    TOKEN_CONSTRUCTED = "token_constructed"
    VALIDATION_FAILED = "validation_failed"
    TRANSPORT_FAILED = "transport_failed"
    PROVIDER_ERROR_RETURNED = "provider_error_returned"


TERMINAL_STATES = frozenset({
    ExchangeState.TOKEN_CONSTRUCTED,
    ExchangeState.VALIDATION_FAILED,
    ExchangeState.TRANSPORT_FAILED,
    ExchangeState.PROVIDER_ERROR_RETURNED,
})


class TokenExchange:
    """One request to the token endpoint, validated and turned into an ``AccessToken``."""

    def __init__(
        self,
        client: "BrokerClient",
        params: Dict[str, Any],
        *,
        expected_state: Optional[str] = None,
        access_token_opts: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
    ) -> None:
        self.client = client
        self.params = dict(params)
        self.expected_state = expected_state
        self.access_token_opts = dict(access_token_opts or {})
        self.provider = provider
        self.state = ExchangeState.UNSTARTED
        self.response: Optional[BrokerResponse] = None
        self.token: Optional[AccessToken] = None

    def _transition(self, new_state: ExchangeState) -> None:
        logger.debug("Token exchange %s → %s", self.state.value, new_state.value)
        self.state = new_state

    def build_request(self) -> Dict[str, Any]:
        """
        Split ``params`` into request options according to ``token_method``.

        POST sends a form body, GET sends query parameters. A ``headers``
        entry in ``params`` is lifted out and sent as request headers.
        """
        params = dict(self.params)
        extra_headers = params.pop("headers", None) or {}
        opts: Dict[str, Any] = {"raise_on_error": self.client.options.raise_on_error}

        if self.client.options.token_method == "POST":
            headers = {"Content-Type": FORM_CONTENT_TYPE}
            headers.update(extra_headers)
            opts["body"] = params
            opts["headers"] = headers
        else:
            opts["params"] = params
            if extra_headers:
                opts["headers"] = dict(extra_headers)

        self._transition(ExchangeState.PARAMS_BUILT)
        return opts

    async def run(self) -> AccessToken:
        if self.state is not ExchangeState.UNSTARTED:
            raise RuntimeError(f"Token exchange already ran (state={self.state.value})")

        opts = self.build_request()
        self._transition(ExchangeState.REQUEST_SENT)
        try:
            response = await self.client.request(
                self.client.options.token_method,
                self.client.options.token_path,
                provider=self.provider,
                **opts,
            )
        except (TransportError, DecodeError):
            self._transition(ExchangeState.TRANSPORT_FAILED)
            raise
        except (ProviderError, UnhandledStatusError):
            self._transition(ExchangeState.PROVIDER_ERROR_RETURNED)
            raise

        self.response = response
        if response.error is not None:
            # raise_on_error=False still leaves nothing to build a token from
            self._transition(ExchangeState.PROVIDER_ERROR_RETURNED)
            raise response.error

        received = response.get("state")
        if received != self.expected_state:
            self._transition(ExchangeState.VALIDATION_FAILED)
            logger.warning(
                "CSRF state mismatch on token exchange (provider=%s)", self.provider
            )
            raise CsrfValidationError(self.expected_state, received)
        self._transition(ExchangeState.VALIDATED)

        data = dict(response.body)
        if self.provider and "provider" not in data:
            data["provider"] = self.provider
        data.update(self.access_token_opts)
        try:
            self.token = AccessToken.from_dict(self.client, data)
        except DecodeError:
            self._transition(ExchangeState.TRANSPORT_FAILED)
            raise
        self._transition(ExchangeState.TOKEN_CONSTRUCTED)
        return self.token
