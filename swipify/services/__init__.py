"""Service layer exports."""

from .login_flow import (
    CallbackParams,
    CallbackStage,
    LoginResult,
    LoginStart,
    SpotifyLoginService,
)
from .pending_logins import PendingLoginStore
from .session import SessionManager
from .spotify_tokens import SpotifyTokenService
from .token_cipher import TokenCipherService, TokenDecryptionError
from .users import UserRepository

__all__ = [
    "CallbackParams",
    "CallbackStage",
    "LoginResult",
    "LoginStart",
    "PendingLoginStore",
    "SessionManager",
    "SpotifyLoginService",
    "SpotifyTokenService",
    "TokenCipherService",
    "TokenDecryptionError",
    "UserRepository",
]
