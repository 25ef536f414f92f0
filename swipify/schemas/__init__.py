"""Public schema exports."""

from .auth import (
    AuthErrorPage,
    LoginCompleteResponse,
    LoginStartResponse,
    OAuthCallbackPayload,
    PublicUser,
    TokenRefreshResponse,
)

__all__ = [
    "AuthErrorPage",
    "LoginCompleteResponse",
    "LoginStartResponse",
    "OAuthCallbackPayload",
    "PublicUser",
    "TokenRefreshResponse",
]
