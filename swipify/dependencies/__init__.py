"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_login_service,
    get_pending_login_store,
    get_session_manager,
    get_signed_payload_encoder,
    get_spotify_api_client,
    get_spotify_oauth_client,
    get_token_cipher_service,
    get_token_service,
    get_user_repository,
)
from .config import get_app_settings
from .session import get_current_user_id, require_user_id

__all__ = [
    "get_app_settings",
    "get_current_user_id",
    "get_login_service",
    "get_pending_login_store",
    "get_session_manager",
    "get_signed_payload_encoder",
    "get_spotify_api_client",
    "get_spotify_oauth_client",
    "get_token_cipher_service",
    "get_token_service",
    "get_user_repository",
    "require_user_id",
]
