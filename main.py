"""
Broker login service — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth.routes import router as auth_router
from config.settings import config
from providers.registry import NormalizerRegistry

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="OAuth.io Broker Login",
        version="1.0.0",
        description="OAuth2 login through a provider broker gateway.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/auth")

    @app.get("/providers")
    async def list_providers() -> list[str]:
        """Providers with a dedicated normalizer; any other name uses the passthrough."""
        return NormalizerRegistry().list_providers()

    if not (config.oauthio_public_key and config.oauthio_secret_key):
        logger.warning("OAUTHIO_PUBLIC_KEY / OAUTHIO_SECRET_KEY not set — logins will fail")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
