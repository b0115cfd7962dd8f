"""
Error taxonomy for the broker client.

Every failure raised by the gateway derives from ``OAuthError`` so hosts
can catch the whole family with one ``except`` clause.
"""

from __future__ import annotations

from typing import Any, Optional


class OAuthError(Exception):
    """Base class for all broker client failures."""


class TransportError(OAuthError):
    """The HTTP call never produced a response (DNS, connect, TLS, timeout)."""


class DecodeError(OAuthError):
    """The response body was not a JSON object."""


class ProviderError(OAuthError):
    """The broker answered with a 4xx/5xx status."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.status: int = response.status
        self.body: Any = response.body
        self.code: Optional[str] = None
        self.description: Optional[str] = None

        if isinstance(self.body, dict):
            self.code = self.body.get("error")
            self.description = self.body.get("error_description")

        message = f"Provider returned HTTP {self.status}"
        if self.code:
            message += f": {self.code}"
            if self.description:
                message += f" ({self.description})"
        super().__init__(message)


class UnhandledStatusError(OAuthError):
    """The status code fell outside every range the pipeline knows about."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.status: int = response.status
        self.body: Any = response.body
        super().__init__(f"Unhandled status code value of {self.status}")


class CsrfValidationError(OAuthError):
    """The round-tripped ``state`` does not match the one issued at authorize time."""

    def __init__(self, expected: Optional[str], received: Optional[str]) -> None:
        self.expected = expected
        self.received = received
        super().__init__("csrf_detected: state mismatch")


class MissingFieldError(OAuthError):
    """A normalizer could not find a required field in the raw profile."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Profile payload is missing required field '{field}'")


class CallbackError(OAuthError):
    """The broker redirected back with an error instead of an authorization code."""

    def __init__(self, error: str, reason: Optional[str] = None, uri: Optional[str] = None) -> None:
        self.error = error
        self.reason = reason
        self.uri = uri
        super().__init__(", ".join(str(part) for part in (error, reason, uri) if part))
