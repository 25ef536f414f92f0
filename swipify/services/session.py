"""Cookie-backed session boundary and login-attempt binding."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response

from swipify.clients.spotify_auth import InvalidSignatureError, SignedPayloadEncoder
from swipify.core.config import SessionSettings

logger = logging.getLogger(__name__)


class SessionManager:
    """Issue, read and clear the signed cookies the rest of the app relies on.

    The session cookie maps a browser to a user id. The state cookie ties a
    pending login to the browser that started it and lives as long as the
    pending-login record, including its retention after expiry.
    """

    def __init__(
        self,
        encoder: SignedPayloadEncoder,
        settings: SessionSettings,
        *,
        secure: bool,
        state_ttl_seconds: int,
    ) -> None:
        self._encoder = encoder
        self._settings = settings
        self._secure = secure
        self._state_ttl = state_ttl_seconds

    def _set_cookie(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key=name,
            value=value,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )

    def _delete_cookie(self, response: Response, name: str) -> None:
        response.delete_cookie(
            key=name, path="/", httponly=True, secure=self._secure, samesite="lax"
        )

    def _read_payload(
        self, request: Request, name: str, max_age: Optional[int]
    ) -> Optional[dict]:
        raw = request.cookies.get(name)
        if not raw:
            return None
        try:
            payload = self._encoder.decode(raw)
            issued_at = datetime.fromisoformat(payload["iat"])
        except (InvalidSignatureError, KeyError, TypeError, ValueError):
            logger.info("Ignoring invalid %s cookie", name)
            return None
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        if max_age is not None and datetime.now(timezone.utc) - issued_at > timedelta(
            seconds=max_age
        ):
            return None
        return payload

    def issue(self, response: Response, user_id: str) -> None:
        value = self._encoder.encode(
            {"uid": user_id, "iat": datetime.now(timezone.utc).isoformat()}
        )
        self._set_cookie(
            response, self._settings.cookie_name, value, self._settings.max_age_seconds
        )

    def read(self, request: Request) -> Optional[str]:
        """Return the user id of the session, or None when unauthenticated."""
        payload = self._read_payload(
            request, self._settings.cookie_name, self._settings.max_age_seconds
        )
        if not payload:
            return None
        user_id = payload.get("uid")
        return user_id if isinstance(user_id, str) and user_id else None

    def clear(self, response: Response) -> None:
        self._delete_cookie(response, self._settings.cookie_name)

    def bind_login_state(self, response: Response, state: str) -> None:
        value = self._encoder.encode(
            {"state": state, "iat": datetime.now(timezone.utc).isoformat()}
        )
        self._set_cookie(response, self._settings.state_cookie_name, value, self._state_ttl)

    def read_login_state(self, request: Request) -> Optional[str]:
        # Expiry of the attempt itself is judged by the pending-login store.
        payload = self._read_payload(request, self._settings.state_cookie_name, None)
        if not payload:
            return None
        state = payload.get("state")
        return state if isinstance(state, str) and state else None

    def clear_login_state(self, response: Response) -> None:
        self._delete_cookie(response, self._settings.state_cookie_name)


__all__ = ["SessionManager"]
