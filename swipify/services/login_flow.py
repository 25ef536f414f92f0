"""
Spotify login flow: PKCE authorization request and callback state machine.
"""

from __future__ import annotations

import hmac
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from swipify.clients.spotify_api import SpotifyAPIClient
from swipify.clients.spotify_auth import SpotifyOAuthClient
from swipify.core.config import OAuthSettings
from swipify.core.errors import (
    AuthFlowError,
    ExpiredVerifierError,
    MissingCodeError,
    ProviderDeniedError,
    StateMismatchError,
    VerifierMismatchError,
    VerifierMissingError,
)
from swipify.models.oauth import OAuthTokenSet, PendingLogin, User
from swipify.services.pending_logins import PendingLoginStore
from swipify.services.users import UserRepository
from swipify.utils.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
    is_valid_code_verifier,
)

logger = logging.getLogger(__name__)

# Unpadded base64url of a SHA-256 digest.
_S256_CHALLENGE = re.compile(r"^[A-Za-z0-9_-]{43}$")


class CallbackStage(str, Enum):
    """Progress of a callback; each stage gates the next."""

    AWAITING_CODE = "AwaitingCode"
    STATE_VALIDATED = "StateValidated"
    CODE_EXCHANGED = "CodeExchanged"
    PROFILE_FETCHED = "ProfileFetched"
    USER_RESOLVED = "UserResolved"
    SESSION_ESTABLISHED = "SessionEstablished"


@dataclass(slots=True, frozen=True)
class LoginStart:
    state: str
    authorization_url: str
    client_held: bool


@dataclass(slots=True, frozen=True)
class CallbackParams:
    """What the provider redirect (or the client POST) delivered.

    ``expected_state`` is the state bound to the browser by the signed cookie.
    """

    state: Optional[str]
    expected_state: Optional[str]
    code: Optional[str] = None
    error: Optional[str] = None
    code_verifier: Optional[str] = None


@dataclass(slots=True, frozen=True)
class LoginResult:
    user: User
    tokens: OAuthTokenSet
    stage: CallbackStage


def _same_state(received: str, expected: str) -> bool:
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


class SpotifyLoginService:
    """Drive a login attempt from authorization request to established session."""

    PROVIDER = "spotify"

    def __init__(
        self,
        *,
        oauth_client: SpotifyOAuthClient,
        api_client: SpotifyAPIClient,
        pending_logins: PendingLoginStore,
        users: UserRepository,
        oauth_settings: OAuthSettings,
    ) -> None:
        self._oauth = oauth_client
        self._api = api_client
        self._pending = pending_logins
        self._users = users
        self._settings = oauth_settings

    def start_login(
        self,
        *,
        code_challenge: Optional[str] = None,
        previous_state: Optional[str] = None,
    ) -> LoginStart:
        """Create a fresh pending login and the provider URL for it.

        Without ``code_challenge`` the server generates and keeps the verifier.
        With it, the browser keeps its own verifier and posts it back on
        callback. Any attempt left over from ``previous_state`` is discarded.
        """
        if previous_state:
            self._pending.discard(previous_state)

        state = generate_state()
        if code_challenge is None:
            verifier = generate_code_verifier(self._settings.code_verifier_length)
            pending = PendingLogin.create(
                state=state,
                code_challenge=generate_code_challenge(verifier),
                code_verifier=verifier,
                ttl_seconds=self._settings.pending_login_ttl_seconds,
            )
        else:
            if not _S256_CHALLENGE.match(code_challenge):
                raise ValueError("code_challenge must be an unpadded base64url SHA-256 digest.")
            pending = PendingLogin.create(
                state=state,
                code_challenge=code_challenge,
                ttl_seconds=self._settings.pending_login_ttl_seconds,
            )

        # Build first so a configuration error leaves nothing behind.
        authorization_url = self._oauth.build_authorization_url(
            state=state, code_challenge=pending.code_challenge
        )
        self._pending.put(pending)
        logger.info("Started Spotify login (client_held=%s)", pending.client_held)
        return LoginStart(
            state=state,
            authorization_url=authorization_url,
            client_held=pending.client_held,
        )

    async def complete_login(
        self,
        params: CallbackParams,
        *,
        establish_session: Callable[[User], None],
    ) -> LoginResult:
        """Run the callback state machine; any failure is terminal for the attempt."""
        stage = CallbackStage.AWAITING_CODE
        try:
            if params.error:
                raise ProviderDeniedError(params.error)
            if not params.code:
                raise MissingCodeError()
            if (
                not params.state
                or not params.expected_state
                or not _same_state(params.state, params.expected_state)
            ):
                raise StateMismatchError("Callback state is not bound to this browser.")

            pending = self._pending.take(params.state)
            if pending is None:
                raise StateMismatchError("No pending login for this state.")
            if pending.is_expired():
                raise ExpiredVerifierError()
            verifier = self._resolve_verifier(pending, params.code_verifier)
            stage = CallbackStage.STATE_VALIDATED

            tokens = await self._oauth.exchange_authorization_code(params.code, verifier)
            stage = CallbackStage.CODE_EXCHANGED

            profile = await self._api.get_current_user_profile(tokens.access_token)
            stage = CallbackStage.PROFILE_FETCHED

            user = self._users.upsert_from_profile(
                provider=self.PROVIDER, profile=profile, tokens=tokens
            )
            stage = CallbackStage.USER_RESOLVED

            establish_session(user)
            stage = CallbackStage.SESSION_ESTABLISHED
        except AuthFlowError as exc:
            logger.warning("Spotify login failed at %s: %s", stage.value, exc.reason)
            if params.expected_state:
                self._pending.discard(params.expected_state)
            raise

        logger.info("Spotify login completed for user %s", user.id)
        return LoginResult(user=user, tokens=tokens, stage=stage)

    @staticmethod
    def _resolve_verifier(pending: PendingLogin, posted_verifier: Optional[str]) -> str:
        if not pending.client_held:
            if not pending.code_verifier:
                raise VerifierMissingError()
            return pending.code_verifier

        if not posted_verifier:
            raise VerifierMissingError("Client-held login posted no verifier.")
        if not is_valid_code_verifier(posted_verifier) or not hmac.compare_digest(
            generate_code_challenge(posted_verifier).encode("ascii"),
            pending.code_challenge.encode("ascii"),
        ):
            raise VerifierMismatchError()
        return posted_verifier


__all__ = [
    "CallbackParams",
    "CallbackStage",
    "LoginResult",
    "LoginStart",
    "SpotifyLoginService",
]
