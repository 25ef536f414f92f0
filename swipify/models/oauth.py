"""
Domain models for the login flow and token persistence.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingLogin(BaseModel):
    """One in-flight login attempt, keyed by its ``state``.

    Server-held attempts store the verifier; client-held attempts only know
    the challenge the browser derived from its own verifier.
    """

    state: str
    code_challenge: str
    code_verifier: Optional[str] = Field(
        None, repr=False, description="Absent when the browser keeps the verifier."
    )
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime

    @classmethod
    def create(
        cls,
        *,
        state: str,
        code_challenge: str,
        code_verifier: Optional[str] = None,
        ttl_seconds: int,
        now: Optional[datetime] = None,
    ) -> "PendingLogin":
        created_at = now or _utcnow()
        return cls(
            state=state,
            code_challenge=code_challenge,
            code_verifier=code_verifier,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
        )

    @property
    def client_held(self) -> bool:
        return self.code_verifier is None

    def is_expired(self, *, reference: Optional[datetime] = None) -> bool:
        moment = reference or _utcnow()
        return moment >= self.expires_at


class OAuthTokenSet(BaseModel):
    """Tokens returned by the provider token endpoint."""

    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(
        None, repr=False, description="Not every grant returns a new refresh token."
    )
    expires_in: int
    expires_at: datetime
    token_type: str = "Bearer"
    scope: Optional[str] = None

    @classmethod
    def from_token_response(
        cls, payload: dict, *, issued_at: Optional[datetime] = None
    ) -> "OAuthTokenSet":
        issued = issued_at or _utcnow()
        expires_in = int(payload["expires_in"])
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_in=expires_in,
            expires_at=issued + timedelta(seconds=expires_in),
            token_type=payload.get("token_type") or "Bearer",
            scope=payload.get("scope"),
        )


class SpotifyProfile(BaseModel):
    """Subset of the Spotify ``/v1/me`` payload mirrored onto the user."""

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None


class User(BaseModel):
    """Local user record, unique per (provider, external_id)."""

    id: str
    provider: str
    external_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    access_token: Optional[str] = Field(None, repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    token_expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["OAuthTokenSet", "PendingLogin", "SpotifyProfile", "User"]
