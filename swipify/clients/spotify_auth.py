"""
Spotify OAuth utilities.

These helpers build the PKCE authorization request, exchange authorization
codes and refresh access tokens. They also provide the HMAC encoder used to
sign the cookies that carry login state and sessions.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from fastapi import status

from swipify.core.config import OAuthSettings, SpotifySettings
from swipify.core.errors import (
    ConfigMissingError,
    ReauthRequiredError,
    TokenExchangeError,
    VerifierMissingError,
)
from swipify.models.oauth import OAuthTokenSet

logger = logging.getLogger(__name__)

_SIGNATURE_SIZE = 32


class InvalidSignatureError(ValueError):
    """Raised when a signed value was tampered with or is malformed."""


class SignedPayloadEncoder:
    """Encode and decode small JSON payloads guarded by an HMAC-SHA256 signature."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("Signing secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignatureError("Signed value is not valid base64.") from exc
        signature, serialized = decoded[:_SIGNATURE_SIZE], decoded[_SIGNATURE_SIZE:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidSignatureError("Invalid signature.")
        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise InvalidSignatureError("Signed value is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidSignatureError("Signed value is not an object.")
        return payload


class SpotifyOAuthClient:
    """Build Spotify authorization URLs and talk to the token endpoint."""

    def __init__(
        self,
        spotify_settings: SpotifySettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._spotify = spotify_settings
        self._oauth = oauth_settings
        self._transport = transport
        self._timeout = timeout

    @property
    def redirect_uri(self) -> str:
        return str(self._spotify.redirect_uri)

    def build_authorization_url(self, *, state: str, code_challenge: str) -> str:
        """Construct the Spotify consent URL for a PKCE login attempt."""
        params = {
            "response_type": "code",
            "client_id": self._spotify.client_id,
            "redirect_uri": self.redirect_uri if self._spotify.redirect_uri else "",
            "scope": " ".join(self._oauth.scopes),
            "code_challenge_method": "S256",
            "code_challenge": code_challenge,
            "state": state,
        }
        missing = [name for name, value in params.items() if not value]
        if missing:
            raise ConfigMissingError(missing)
        return f"{self._spotify.auth_base_url}?{urlencode(params)}"

    def _client_credentials(self) -> Dict[str, str]:
        credentials = {"client_id": self._spotify.client_id}
        if self._spotify.client_secret:
            credentials["client_secret"] = self._spotify.client_secret
        return credentials

    async def _post_token_request(self, payload: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            return await client.post(self._spotify.token_url, data=payload)

    async def exchange_authorization_code(
        self, code: str, code_verifier: str
    ) -> OAuthTokenSet:
        """Exchange an authorization code (and its PKCE verifier) for tokens.

        Authorization codes are single use, so a failed exchange is never retried.
        """
        if not code_verifier:
            raise VerifierMissingError("Refusing to exchange a code without a verifier.")

        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
            **self._client_credentials(),
        }

        try:
            response = await self._post_token_request(payload)
        except httpx.HTTPError as exc:
            raise TokenExchangeError("Token endpoint unreachable.") from exc

        if not response.is_success:
            logger.warning(
                "Token endpoint rejected authorization code (status=%s)",
                response.status_code,
            )
            raise TokenExchangeError(f"Token endpoint returned {response.status_code}.")

        return self._parse_token_payload(response, "authorization code exchange")

    async def refresh_token(self, refresh_token: str) -> OAuthTokenSet:
        """Mint a new access token from a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **self._client_credentials(),
        }

        try:
            response = await self._post_token_request(payload)
        except httpx.HTTPError as exc:
            raise TokenExchangeError("Token endpoint unreachable.") from exc

        if response.status_code in (
            status.HTTP_400_BAD_REQUEST,
            status.HTTP_401_UNAUTHORIZED,
        ):
            raise ReauthRequiredError(f"Refresh rejected with {response.status_code}.")
        if not response.is_success:
            raise TokenExchangeError(f"Token endpoint returned {response.status_code}.")

        return self._parse_token_payload(response, "token refresh")

    @staticmethod
    def _parse_token_payload(response: httpx.Response, operation: str) -> OAuthTokenSet:
        try:
            token_payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError(f"Malformed payload returned from {operation}.") from exc

        if not isinstance(token_payload, dict):
            raise TokenExchangeError(f"Non-object payload returned from {operation}.")
        if not token_payload.get("access_token") or not token_payload.get("expires_in"):
            raise TokenExchangeError(f"Incomplete payload returned from {operation}.")

        try:
            return OAuthTokenSet.from_token_response(token_payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenExchangeError(f"Malformed payload returned from {operation}.") from exc


__all__ = [
    "InvalidSignatureError",
    "SignedPayloadEncoder",
    "SpotifyOAuthClient",
]
