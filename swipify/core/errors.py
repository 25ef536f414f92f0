"""
Error taxonomy for the Spotify login flow.

Every failure carries a stable ``reason`` code for logs and JSON clients and a
``user_message`` that is safe to show in the browser. Provider payloads and
token material never end up in either.
"""

from __future__ import annotations

from typing import Iterable


class AuthFlowError(Exception):
    """Base class for failures surfaced by the authentication flow."""

    reason = "AuthFailed"
    user_message = "Authentication failed, please try again."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.reason)
        self.detail = detail


class ProviderDeniedError(AuthFlowError):
    """The identity provider redirected back with an ``error`` parameter."""

    reason = "ProviderDenied"
    user_message = "Spotify did not grant access. Please try logging in again."


class MissingCodeError(AuthFlowError):
    """The callback arrived without an authorization code."""

    reason = "MissingCode"
    user_message = "No authorization code received. Please try logging in again."


class StateMismatchError(AuthFlowError):
    """The callback state does not belong to a pending login of this browser."""

    reason = "StateMismatch"
    user_message = "State verification failed. Please try logging in again."


class VerifierMissingError(AuthFlowError):
    """No PKCE code verifier is available for the login attempt."""

    reason = "VerifierMissing"
    user_message = "Authentication session expired. Please try again."


class VerifierMismatchError(AuthFlowError):
    """A client-held verifier does not hash to the challenge sent at login."""

    reason = "VerifierMismatch"
    user_message = "Authentication failed, please try again."


class ExpiredVerifierError(AuthFlowError):
    """The pending login outlived its TTL."""

    reason = "ExpiredVerifier"
    user_message = "Authentication session expired. Please try again."


class TokenExchangeError(AuthFlowError):
    """The token endpoint rejected or failed an exchange."""

    reason = "TokenExchangeFailed"
    user_message = "Authentication failed, please try again."


class ProfileFetchError(AuthFlowError):
    """The current user profile could not be retrieved."""

    reason = "ProfileFetchFailed"
    user_message = "Could not load your Spotify profile. Please try again."


class NoRefreshTokenError(AuthFlowError):
    """The user has no stored refresh token."""

    reason = "NoRefreshToken"
    user_message = "Please log in with Spotify again."


class ReauthRequiredError(AuthFlowError):
    """The provider rejected the refresh token; a full login is needed."""

    reason = "ReauthRequired"
    user_message = "Your Spotify session has ended. Please log in again."


class NotAuthenticatedError(AuthFlowError):
    """The request carries no valid session cookie."""

    reason = "NotAuthenticated"
    user_message = "Not authenticated."


class ConfigMissingError(AuthFlowError):
    """Required deployment configuration is absent."""

    reason = "ConfigMissing"
    user_message = "Server configuration error."

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        super().__init__(
            "Missing or invalid configuration: " + ", ".join(self.names)
        )


__all__ = [
    "AuthFlowError",
    "ConfigMissingError",
    "ExpiredVerifierError",
    "MissingCodeError",
    "NoRefreshTokenError",
    "NotAuthenticatedError",
    "ProfileFetchError",
    "ProviderDeniedError",
    "ReauthRequiredError",
    "StateMismatchError",
    "TokenExchangeError",
    "VerifierMismatchError",
    "VerifierMissingError",
]
