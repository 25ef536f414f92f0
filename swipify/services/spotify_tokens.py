"""
Helpers for retrieving and refreshing stored Spotify tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from swipify.clients.spotify_auth import SpotifyOAuthClient
from swipify.core.errors import (
    NoRefreshTokenError,
    NotAuthenticatedError,
    ReauthRequiredError,
)
from swipify.models.oauth import OAuthTokenSet, User
from swipify.services.users import UserRepository

logger = logging.getLogger(__name__)


class SpotifyTokenService:
    """Manages access to persisted Spotify tokens."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(self, *, users: UserRepository, oauth_client: SpotifyOAuthClient) -> None:
        self._users = users
        self._oauth = oauth_client

    def _load_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotAuthenticatedError(f"No user {user_id}.")
        return user

    async def refresh(self, *, user_id: str) -> OAuthTokenSet:
        """Exchange the stored refresh token and overwrite the stored token set.

        When the provider does not rotate the refresh token the stored one is
        kept. A rejected refresh token leaves the stored record untouched.
        """
        user = self._load_user(user_id)
        if not user.refresh_token:
            raise NoRefreshTokenError()

        try:
            tokens = await self._oauth.refresh_token(user.refresh_token)
        except ReauthRequiredError:
            logger.info("Refresh token rejected for user %s; re-login required", user_id)
            raise

        self._users.update_tokens(user_id, tokens)
        logger.info("Refreshed Spotify access token for user %s", user_id)
        return tokens

    async def get_access_token(self, *, user_id: str) -> str:
        """Return a usable access token, refreshing it when close to expiry."""
        user = self._load_user(user_id)
        expires_at = user.token_expires_at
        if user.access_token and expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at > datetime.now(timezone.utc) + self._REFRESH_WINDOW:
                return user.access_token

        tokens = await self.refresh(user_id=user_id)
        return tokens.access_token


__all__ = ["SpotifyTokenService"]
