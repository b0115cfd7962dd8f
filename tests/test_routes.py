"""
Tests for the /auth login routes.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from auth.routes import PENDING_COOKIE, get_strategy
from auth.strategy import BrokerStrategy
from main import create_app

SITE = "https://broker.test"


@pytest.fixture
def broker_state():
    return {}


@pytest.fixture
def client(make_client, broker_state):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/access_token":
            return httpx.Response(
                200, json={"access_token": "T1", "state": broker_state.get("state")}
            )
        return httpx.Response(200, json={"data": {"raw": {"id": "42", "name": "Ann"}}})

    strategy = BrokerStrategy(make_client(handler))
    app = create_app()
    app.dependency_overrides[get_strategy] = lambda: strategy
    with TestClient(app) as test_client:
        yield test_client


class TestLoginRoutes:
    def test_request_phase_redirects_and_sets_cookie(self, client):
        response = client.get("/auth/github", follow_redirects=False)
        assert response.status_code == 302
        location = httpx.URL(response.headers["location"])
        assert str(location).startswith(f"{SITE}/auth/github?")
        assert location.params["state"]
        assert location.params["redirect_uri"].endswith("/auth/github/callback")
        assert PENDING_COOKIE in response.cookies

    def test_callback_returns_identity(self, client, broker_state):
        response = client.get("/auth/github", follow_redirects=False)
        state = httpx.URL(response.headers["location"]).params["state"]
        broker_state["state"] = state

        callback = client.get("/auth/github/callback", params={"code": "abc", "state": state})

        assert callback.status_code == 200
        body = callback.json()
        assert body["uid"] == "42"
        assert body["provider"] == "github"
        assert body["info"] == {"name": "Ann"}
        assert body["credentials"] == {"token": "T1", "expires": False}

    def test_callback_with_wrong_state(self, client, broker_state):
        client.get("/auth/github", follow_redirects=False)
        callback = client.get("/auth/github/callback", params={"code": "abc", "state": "forged"})
        assert callback.status_code == 400
        assert callback.json()["error"] == "csrf_detected"

    def test_callback_without_login(self, client):
        callback = client.get("/auth/github/callback", params={"code": "abc", "state": "x"})
        assert callback.status_code == 400

    def test_tampered_cookie(self, client):
        callback = client.get(
            "/auth/github/callback",
            params={"code": "abc", "state": "x"},
            headers={"Cookie": f"{PENDING_COOKIE}=e30.deadbeef"},
        )
        assert callback.status_code == 400
        assert callback.json()["error"] == "invalid_state"

    def test_non_ascii_cookie_signature(self, client):
        callback = client.get(
            "/auth/github/callback",
            params={"code": "abc", "state": "x"},
            headers={"Cookie": f"{PENDING_COOKIE}=eyJ4IjoxfQ.\u00e9\u00e9".encode("latin-1")},
        )
        assert callback.status_code == 400
        assert callback.json()["error"] == "invalid_state"

    def test_broker_error_on_callback(self, client):
        client.get("/auth/github", follow_redirects=False)
        callback = client.get("/auth/github/callback", params={"error": "access_denied"})
        assert callback.status_code == 400
        assert callback.json()["error"] == "access_denied"

    def test_token_endpoint_mismatch_is_csrf(self, client, broker_state):
        response = client.get("/auth/github", follow_redirects=False)
        state = httpx.URL(response.headers["location"]).params["state"]
        broker_state["state"] = "something-else"
        callback = client.get("/auth/github/callback", params={"code": "abc", "state": state})
        assert callback.status_code == 400
        assert callback.json()["error"] == "csrf_detected"
