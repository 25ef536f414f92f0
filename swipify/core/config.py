"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the login flow and the
operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from swipify.core.errors import ConfigMissingError


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class SpotifySettings(BaseSettings):
    """Configuration required for talking to the Spotify accounts service."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field(..., min_length=1, validation_alias="SPOTIFY_CLIENT_ID")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="SPOTIFY_REDIRECT_URI")
    client_secret: Optional[str] = Field(
        None,
        validation_alias="SPOTIFY_CLIENT_SECRET",
        description="Only needed when the app is registered as a confidential client.",
    )
    auth_base_url: str = Field(
        "https://accounts.spotify.com/authorize", validation_alias="SPOTIFY_AUTH_BASE_URL"
    )
    token_url: str = Field(
        "https://accounts.spotify.com/api/token", validation_alias="SPOTIFY_TOKEN_URL"
    )
    api_base_url: str = Field(
        "https://api.spotify.com/v1", validation_alias="SPOTIFY_API_BASE_URL"
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    pending_login_ttl_seconds: int = Field(
        600, gt=0, validation_alias="OAUTH_PENDING_LOGIN_TTL"
    )
    code_verifier_length: int = Field(
        64, ge=43, le=128, validation_alias="OAUTH_CODE_VERIFIER_LENGTH"
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "user-read-email",
            "user-read-private",
            "playlist-read-private",
            "playlist-read-collaborative",
            "user-library-read",
            "user-top-read",
        ),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class SessionSettings(BaseSettings):
    """Signed cookie configuration for sessions and login attempts."""

    model_config = SettingsConfigDict(populate_by_name=True)

    secret: str = Field(..., min_length=1, validation_alias="SESSION_SECRET")
    cookie_name: str = Field("swipify_session", validation_alias="SESSION_COOKIE_NAME")
    max_age_seconds: int = Field(
        60 * 60 * 24 * 7, gt=0, validation_alias="SESSION_MAX_AGE"
    )
    state_cookie_name: str = Field(
        "swipify_auth_state", validation_alias="SESSION_STATE_COOKIE_NAME"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field("data/swipify.db", validation_alias="APP_DATABASE_PATH")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL of the front-end hosting the landing and error pages.",
    )
    login_success_path: str = Field("/dashboard", validation_alias="LOGIN_SUCCESS_PATH")
    login_error_path: str = Field("/auth/error", validation_alias="LOGIN_ERROR_PATH")
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def _error_names(exc: ValidationError) -> set[str]:
    return {str(error["loc"][-1]) for error in exc.errors() if error["loc"]}


def load_settings() -> AppSettings:
    """Instantiate settings, reporting missing values as a configuration error.

    Nested sections are built by default factories, so the first failing one
    aborts construction; each section is probed to name every bad variable.
    """
    try:
        return AppSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        names = _error_names(exc)
        for section in (SpotifySettings, OAuthSettings, SessionSettings, SecuritySettings):
            try:
                section()  # type: ignore[call-arg]
            except ValidationError as section_exc:
                names |= _error_names(section_exc)
        raise ConfigMissingError(sorted(names)) from exc


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return load_settings()


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SessionSettings",
    "SpotifySettings",
    "get_settings",
    "load_settings",
]
