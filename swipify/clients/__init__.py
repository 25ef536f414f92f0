"""Expose constructed client wrappers."""

from .spotify_api import SpotifyAPIClient
from .spotify_auth import InvalidSignatureError, SignedPayloadEncoder, SpotifyOAuthClient
from .sqlite_store import SQLiteStore

__all__ = [
    "InvalidSignatureError",
    "SQLiteStore",
    "SignedPayloadEncoder",
    "SpotifyAPIClient",
    "SpotifyOAuthClient",
]
