"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from swipify.clients import SignedPayloadEncoder, SpotifyAPIClient, SpotifyOAuthClient
from swipify.core.config import AppSettings, get_settings
from swipify.dependencies.config import get_app_settings
from swipify.services import (
    PendingLoginStore,
    SessionManager,
    SpotifyLoginService,
    SpotifyTokenService,
    TokenCipherService,
    UserRepository,
)


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_signed_payload_encoder() -> SignedPayloadEncoder:
    """Provide the HMAC encoder for session and login-state cookies."""
    return SignedPayloadEncoder(secret_key=_settings().session.secret)


@lru_cache()
def get_spotify_oauth_client() -> SpotifyOAuthClient:
    """Create a singleton Spotify OAuth client."""
    settings = _settings()
    return SpotifyOAuthClient(settings.spotify, settings.oauth)


@lru_cache()
def get_spotify_api_client() -> SpotifyAPIClient:
    """Provide the Spotify Web API client used for profile lookups."""
    return SpotifyAPIClient(_settings().spotify.api_base_url)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.session.secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_pending_login_store() -> PendingLoginStore:
    """Provide shared pending-login store."""
    return PendingLoginStore(_settings().database_path)


@lru_cache()
def get_user_repository() -> UserRepository:
    """Provide shared user repository."""
    return UserRepository(
        _settings().database_path, token_cipher=get_token_cipher_service()
    )


def get_session_manager(
    encoder: Annotated[SignedPayloadEncoder, Depends(get_signed_payload_encoder)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> SessionManager:
    """Build the cookie session boundary."""
    return SessionManager(
        encoder,
        settings.session,
        secure=settings.is_production,
        # Outlive the attempt so an expired callback is still tied to its record.
        state_ttl_seconds=settings.oauth.pending_login_ttl_seconds
        + int(PendingLoginStore.EXPIRED_RETENTION.total_seconds()),
    )


def get_login_service(
    oauth_client: Annotated[SpotifyOAuthClient, Depends(get_spotify_oauth_client)],
    api_client: Annotated[SpotifyAPIClient, Depends(get_spotify_api_client)],
    pending_logins: Annotated[PendingLoginStore, Depends(get_pending_login_store)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> SpotifyLoginService:
    """Build the login flow service from the shared clients."""
    return SpotifyLoginService(
        oauth_client=oauth_client,
        api_client=api_client,
        pending_logins=pending_logins,
        users=users,
        oauth_settings=settings.oauth,
    )


def get_token_service(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    oauth_client: Annotated[SpotifyOAuthClient, Depends(get_spotify_oauth_client)],
) -> SpotifyTokenService:
    """Build the token refresh service."""
    return SpotifyTokenService(users=users, oauth_client=oauth_client)


__all__ = [
    "get_login_service",
    "get_pending_login_store",
    "get_session_manager",
    "get_signed_payload_encoder",
    "get_spotify_api_client",
    "get_spotify_oauth_client",
    "get_token_cipher_service",
    "get_token_service",
    "get_user_repository",
]
