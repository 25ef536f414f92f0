try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

try:
    from ._fakes import FakeSpotify
except ImportError:  # pragma: no cover
    from _fakes import FakeSpotify  # type: ignore

from datetime import datetime, timedelta, timezone

import pytest

from swipify.core.errors import (
    NoRefreshTokenError,
    NotAuthenticatedError,
    ReauthRequiredError,
    TokenExchangeError,
)
from swipify.models.oauth import OAuthTokenSet, SpotifyProfile, User
from swipify.services import SpotifyTokenService, UserRepository


def _seed_user(
    user_repo: UserRepository,
    *,
    refresh_token: str | None = "RT1",
    issued_at: datetime | None = None,
) -> User:
    payload = {"access_token": "AT1", "expires_in": 3600}
    if refresh_token:
        payload["refresh_token"] = refresh_token
    return user_repo.upsert_from_profile(
        provider="spotify",
        profile=SpotifyProfile(id="spotify-user-1", display_name="Dana"),
        tokens=OAuthTokenSet.from_token_response(payload, issued_at=issued_at),
    )


@pytest.fixture
def fake() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def token_service(fake: FakeSpotify, user_repo: UserRepository) -> SpotifyTokenService:
    return SpotifyTokenService(users=user_repo, oauth_client=fake.oauth_client())


@pytest.mark.asyncio
async def test_refresh_overwrites_access_token_and_keeps_refresh_token(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(user_repo)

    tokens = await token_service.refresh(user_id=user.id)

    assert tokens.access_token == "AT2"
    assert fake.token_requests[0]["grant_type"] == "refresh_token"
    assert fake.token_requests[0]["refresh_token"] == "RT1"
    stored = user_repo.get_by_id(user.id)
    assert stored.access_token == "AT2"
    assert stored.refresh_token == "RT1"


@pytest.mark.asyncio
async def test_refresh_stores_rotated_refresh_token(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(user_repo)
    fake.refresh_payload = {**fake.refresh_payload, "refresh_token": "RT2"}

    await token_service.refresh(user_id=user.id)

    assert user_repo.get_by_id(user.id).refresh_token == "RT2"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 401])
async def test_rejected_refresh_requires_reauth_and_keeps_record(
    token_service: SpotifyTokenService,
    fake: FakeSpotify,
    user_repo: UserRepository,
    status_code: int,
) -> None:
    user = _seed_user(user_repo)
    fake.refresh_status = status_code

    with pytest.raises(ReauthRequiredError):
        await token_service.refresh(user_id=user.id)

    stored = user_repo.get_by_id(user.id)
    assert stored.access_token == "AT1"
    assert stored.refresh_token == "RT1"
    assert stored.updated_at == user.updated_at


@pytest.mark.asyncio
async def test_provider_outage_is_not_a_reauth(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(user_repo)
    fake.refresh_status = 503

    with pytest.raises(TokenExchangeError):
        await token_service.refresh(user_id=user.id)

    assert user_repo.get_by_id(user.id).access_token == "AT1"


@pytest.mark.asyncio
async def test_refresh_without_stored_refresh_token(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(user_repo, refresh_token=None)

    with pytest.raises(NoRefreshTokenError):
        await token_service.refresh(user_id=user.id)

    assert fake.token_requests == []


@pytest.mark.asyncio
async def test_refresh_for_unknown_user(token_service: SpotifyTokenService) -> None:
    with pytest.raises(NotAuthenticatedError):
        await token_service.refresh(user_id="missing")


@pytest.mark.asyncio
async def test_get_access_token_uses_fresh_token(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(user_repo)

    assert await token_service.get_access_token(user_id=user.id) == "AT1"
    assert fake.token_requests == []


@pytest.mark.asyncio
async def test_get_access_token_refreshes_near_expiry(
    token_service: SpotifyTokenService, fake: FakeSpotify, user_repo: UserRepository
) -> None:
    user = _seed_user(
        user_repo, issued_at=datetime.now(timezone.utc) - timedelta(minutes=58)
    )

    assert await token_service.get_access_token(user_id=user.id) == "AT2"
    assert len(fake.token_requests) == 1
