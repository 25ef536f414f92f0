"""
Thin wrapper around the Spotify Web API endpoints the login flow needs.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from swipify.core.errors import ProfileFetchError
from swipify.models.oauth import SpotifyProfile
from swipify.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class SpotifyAPIClient:
    """Fetch the profile of the user an access token belongs to."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._retry = retry_config or RetryConfig(attempts=2)
        self._timeout = timeout

    async def get_current_user_profile(self, access_token: str) -> SpotifyProfile:
        """Return the ``/me`` profile, retrying transient failures."""
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.get,
                    f"{self._base_url}/me",
                    headers=headers,
                    retry_config=self._retry,
                )
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Profile request failed (status=%s)", exc.response.status_code
            )
            raise ProfileFetchError(
                f"Profile endpoint returned {exc.response.status_code}."
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProfileFetchError("Profile endpoint unreachable or malformed.") from exc

        if not isinstance(payload, dict) or not payload.get("id"):
            raise ProfileFetchError("Profile payload missing user id.")

        images = payload.get("images") or []
        avatar_url = images[0].get("url") if images and isinstance(images[0], dict) else None
        return SpotifyProfile(
            id=payload["id"],
            display_name=payload.get("display_name"),
            email=payload.get("email"),
            avatar_url=avatar_url,
            country=payload.get("country"),
            product=payload.get("product"),
        )


__all__ = ["SpotifyAPIClient"]
