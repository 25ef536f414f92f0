"""
FastAPI application entrypoint for the Swipify authentication service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from swipify.api.routes import auth_error_response, router as api_router
from swipify.core.config import get_settings
from swipify.core.errors import AuthFlowError
from swipify.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Factory for the FastAPI application.

    Settings are loaded eagerly so a missing client id, redirect URI or
    session secret stops the process before any login is attempted.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Swipify Auth",
        version="0.1.0",
        description="Spotify login with PKCE, sessions and token refresh.",
    )
    app.include_router(api_router, prefix="/api")
    app.add_exception_handler(AuthFlowError, auth_error_response)
    logger.info("Swipify auth service configured (environment=%s)", settings.environment)
    return app


app = create_app()

__all__ = ["app", "create_app"]
