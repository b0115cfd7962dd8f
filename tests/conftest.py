"""
Shared fixtures — broker clients wired to an in-memory ``httpx.MockTransport``.
"""

import httpx
import pytest

from gateway.client import new_client
from providers.registry import NormalizerRegistry

SITE = "https://broker.test"


@pytest.fixture
def make_client():
    """Factory: ``make_client(handler, **options)`` → BrokerClient over a mock transport."""

    def _make(handler, **options):
        options.setdefault("site", SITE)
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return new_client("public-key", "secret-key", http_client=http, **options)

    return _make


@pytest.fixture(autouse=True)
def fresh_registry():
    NormalizerRegistry.reset()
    yield
    NormalizerRegistry.reset()
