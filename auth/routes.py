"""
Login routes — redirect to the broker, handle its callback.

Route prefix: /auth
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from auth.state import sign_pending, verify_pending
from auth.strategy import SESSION_KEY, BrokerStrategy, PendingAuthorization
from config.settings import config
from gateway.client import BrokerClient
from gateway.errors import CallbackError, CsrfValidationError, OAuthError
from gateway.options import ClientOptions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

PENDING_COOKIE = "oauthio_pending"


@lru_cache(maxsize=1)
def get_strategy() -> BrokerStrategy:
    """Process-wide strategy; client options are immutable so sharing is safe."""
    return BrokerStrategy(BrokerClient(ClientOptions.from_settings(config)))


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail},
    )
    response.delete_cookie(PENDING_COOKIE)
    return response


@router.get("/{provider}")
async def request_phase(
    provider: str,
    strategy: BrokerStrategy = Depends(get_strategy),
) -> RedirectResponse:
    """Redirect the browser to the broker's authorize endpoint."""
    session: Dict[str, Any] = {}
    url = strategy.request_phase(
        provider,
        session,
        {"redirect_uri": config.callback_url(provider)},
    )
    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        PENDING_COOKIE,
        sign_pending(PendingAuthorization(**session[SESSION_KEY])),
        max_age=config.oauth_state_ttl,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/{provider}/callback")
async def callback_phase(
    provider: str,
    request: Request,
    strategy: BrokerStrategy = Depends(get_strategy),
) -> JSONResponse:
    """
    The broker redirects here with ``code`` + ``state``.

    Returns the canonical identity as JSON and clears the pending cookie.
    """
    session: Dict[str, Any] = {}
    cookie = request.cookies.get(PENDING_COOKIE)
    if cookie:
        try:
            session[SESSION_KEY] = verify_pending(cookie).model_dump()
        except ValueError as exc:
            logger.warning("Rejected pending-state cookie for %s: %s", provider, exc)
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                "invalid_state",
                f"Invalid or expired OAuth state: {exc}",
            )

    try:
        identity = await strategy.callback_phase(
            provider,
            dict(request.query_params),
            session,
            {"redirect_uri": config.callback_url(provider)},
        )
    except CsrfValidationError as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, "csrf_detected", str(exc))
    except CallbackError as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.error, str(exc))
    except OAuthError as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        return _error_response(status.HTTP_502_BAD_GATEWAY, "broker_error", str(exc))

    response = JSONResponse(content=identity.to_dict())
    response.delete_cookie(PENDING_COOKIE)
    return response
