"""Schemas related to the Spotify login flow."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from swipify.models.oauth import User


class OAuthCallbackPayload(BaseModel):
    """Payload posted by a client that keeps its own PKCE verifier."""

    code: Optional[str] = Field(None, description="Authorization code returned by Spotify.")
    state: str = Field(..., description="State token issued when starting the login.")
    code_verifier: Optional[str] = Field(
        None, description="PKCE verifier held by the client for this login attempt."
    )
    error: Optional[str] = Field(None, description="Error code relayed from Spotify.")


class LoginStartResponse(BaseModel):
    authorization_url: str
    state: str


class TokenRefreshResponse(BaseModel):
    access_token: str
    expires_in: int


class PublicUser(BaseModel):
    """User fields safe to hand to the browser."""

    id: str
    provider: str
    external_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    has_spotify_token: bool = False

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(
            id=user.id,
            provider=user.provider,
            external_id=user.external_id,
            display_name=user.display_name,
            email=user.email,
            avatar_url=user.avatar_url,
            token_expires_at=user.token_expires_at,
            has_spotify_token=bool(user.access_token),
        )


class LoginCompleteResponse(BaseModel):
    status: str = "authenticated"
    user: PublicUser


class AuthErrorPage(BaseModel):
    message: str
    retry_url: str


__all__ = [
    "AuthErrorPage",
    "LoginCompleteResponse",
    "LoginStartResponse",
    "OAuthCallbackPayload",
    "PublicUser",
    "TokenRefreshResponse",
]
