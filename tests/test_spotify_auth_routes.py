try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

try:
    from ._fakes import FakeSpotify
except ImportError:  # pragma: no cover
    from _fakes import FakeSpotify  # type: ignore

import copy
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from swipify.dependencies import get_signed_payload_encoder
from swipify.main import app
from swipify.services import PendingLoginStore, UserRepository
from swipify.utils.pkce import generate_code_challenge, generate_code_verifier

pytestmark = pytest.mark.anyio


@pytest.fixture()
def overrides(pending_store: PendingLoginStore, user_repo: UserRepository):
    from swipify import dependencies
    from swipify.core.config import get_settings

    fake = FakeSpotify()
    base_settings = copy.deepcopy(get_settings())
    base_settings.frontend_base_url = None

    app.dependency_overrides.update(
        {
            dependencies.get_spotify_oauth_client: lambda: fake.oauth_client(),
            dependencies.get_spotify_api_client: lambda: fake.api_client(),
            dependencies.get_pending_login_store: lambda: pending_store,
            dependencies.get_user_repository: lambda: user_repo,
            dependencies.get_app_settings: lambda: base_settings,
        }
    )

    yield fake, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def _state_cookie_for(state: str) -> str:
    return get_signed_payload_encoder().encode(
        {"state": state, "iat": datetime.now(timezone.utc).isoformat()}
    )


async def _login(client: httpx.AsyncClient) -> str:
    response = await client.get("/api/auth/spotify/login")
    assert response.status_code == 200
    return response.json()["state"]


async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.json() == {"status": "ok"}


async def test_login_returns_authorization_url_and_binds_state(overrides) -> None:
    async with _client() as client:
        response = await client.get("/api/auth/spotify/login")

    assert response.status_code == 200
    data = response.json()
    query = parse_qs(urlparse(data["authorization_url"]).query)
    assert data["authorization_url"].startswith("https://accounts.spotify.com/authorize")
    assert query["state"] == [data["state"]]
    assert query["code_challenge_method"] == ["S256"]
    assert "swipify_auth_state=" in response.headers["set-cookie"]


async def test_login_redirects_browsers(overrides) -> None:
    async with _client() as client:
        response = await client.get(
            "/api/auth/spotify/login", headers={"accept": "text/html"}
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://accounts.spotify.com/authorize")


async def test_login_rejects_malformed_challenge(overrides) -> None:
    async with _client() as client:
        response = await client.get(
            "/api/auth/spotify/login", params={"code_challenge": "too-short"}
        )

    assert response.status_code == 400


async def test_callback_establishes_session(overrides, user_repo: UserRepository) -> None:
    fake, _ = overrides
    async with _client() as client:
        state = await _login(client)
        callback = await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )
        assert callback.status_code == 307
        assert callback.headers["location"] == "http://testserver/api/users/me"

        me = await client.get("/api/users/me")

    assert me.status_code == 200
    body = me.json()
    assert body["external_id"] == "spotify-user-1"
    assert body["display_name"] == "Dana"
    assert body["has_spotify_token"] is True
    assert "access_token" not in body
    assert fake.token_requests[0]["code"] == "fake-code"
    assert user_repo.count() == 1


async def test_callback_redirects_to_frontend_landing(overrides) -> None:
    _, settings = overrides
    settings.frontend_base_url = "https://swipify.example.com/"

    async with _client() as client:
        state = await _login(client)
        callback = await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )

    assert callback.status_code == 307
    assert callback.headers["location"] == "https://swipify.example.com/dashboard"


async def test_callback_with_foreign_state_redirects_to_error(
    overrides, user_repo: UserRepository
) -> None:
    fake, _ = overrides
    async with _client() as client:
        await _login(client)
        callback = await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": "forged"}
        )
        me = await client.get("/api/users/me")

    assert callback.status_code == 307
    location = callback.headers["location"]
    assert location.startswith("http://testserver/api/auth/error?")
    assert parse_qs(urlparse(location).query)["message"]
    assert fake.token_requests == []
    assert user_repo.count() == 0
    assert me.status_code == 401


async def test_provider_denial_redirects_to_error(overrides) -> None:
    async with _client() as client:
        state = await _login(client)
        callback = await client.get(
            "/api/auth/spotify/callback", params={"error": "access_denied", "state": state}
        )
        page = await client.get(callback.headers["location"])

    assert callback.status_code == 307
    assert page.status_code == 200
    assert page.json()["retry_url"] == "http://testserver/api/auth/spotify/login"


async def test_replayed_callback_fails(overrides) -> None:
    fake, _ = overrides
    async with _client() as client:
        state = await _login(client)
        params = {"code": "fake-code", "state": state}
        first = await client.get("/api/auth/spotify/callback", params=params)
        second = await client.get(
            "/api/auth/spotify/callback",
            params=params,
            headers={"cookie": f"swipify_auth_state={_state_cookie_for(state)}"},
        )

    assert first.headers["location"].endswith("/api/users/me")
    assert "/api/auth/error" in second.headers["location"]
    assert len(fake.token_requests) == 1


async def test_client_held_verifier_post_callback(overrides) -> None:
    fake, _ = overrides
    verifier = generate_code_verifier()
    async with _client() as client:
        start = await client.get(
            "/api/auth/spotify/login",
            params={"code_challenge": generate_code_challenge(verifier)},
            headers={"accept": "text/html"},
        )
        assert start.status_code == 200
        state = start.json()["state"]

        response = await client.post(
            "/api/auth/spotify/callback",
            json={"code": "fake-code", "state": state, "code_verifier": verifier},
        )
        me = await client.get("/api/users/me")

    assert response.status_code == 200
    assert response.json()["status"] == "authenticated"
    assert fake.token_requests[0]["code_verifier"] == verifier
    assert me.status_code == 200


async def test_client_held_wrong_verifier_is_rejected(overrides) -> None:
    verifier = generate_code_verifier()
    async with _client() as client:
        start = await client.get(
            "/api/auth/spotify/login",
            params={"code_challenge": generate_code_challenge(verifier)},
        )
        response = await client.post(
            "/api/auth/spotify/callback",
            json={
                "code": "fake-code",
                "state": start.json()["state"],
                "code_verifier": generate_code_verifier(),
            },
        )

    assert response.status_code == 400
    assert response.json()["error"] == "VerifierMismatch"


async def test_refresh_returns_new_access_token(overrides) -> None:
    async with _client() as client:
        state = await _login(client)
        await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )
        response = await client.post("/api/auth/spotify/refresh")

    assert response.status_code == 200
    assert response.json() == {"access_token": "AT2", "expires_in": 3600}


async def test_rejected_refresh_asks_for_login(overrides) -> None:
    fake, _ = overrides
    fake.refresh_status = 401
    async with _client() as client:
        state = await _login(client)
        await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )
        response = await client.post("/api/auth/spotify/refresh")

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "ReauthRequired"
    assert body["login_url"] == "http://testserver/api/auth/spotify/login"


async def test_anonymous_requests_are_unauthorized(overrides) -> None:
    async with _client() as client:
        me = await client.get("/api/users/me")
        refresh = await client.post("/api/auth/spotify/refresh")

    assert me.status_code == 401
    assert me.json()["error"] == "NotAuthenticated"
    assert refresh.status_code == 401


async def test_logout_clears_session_cookie(overrides) -> None:
    async with _client() as client:
        response = await client.post("/api/auth/spotify/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    header = response.headers["set-cookie"]
    assert header.startswith("swipify_session=")
    assert "Max-Age=0" in header


async def test_late_callback_reports_expired_attempt(
    overrides, pending_store: PendingLoginStore
) -> None:
    fake, _ = overrides
    async with _client() as client:
        start = await client.get("/api/auth/spotify/login")
        state = start.json()["state"]
        assert "Max-Age=4200" in start.headers["set-cookie"]

        past = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        with pending_store._connect() as conn:
            conn.execute(
                "UPDATE pending_logins SET expires_at = ? WHERE state = ?", (past, state)
            )

        callback = await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )

    message = parse_qs(urlparse(callback.headers["location"]).query)["message"][0]
    assert callback.status_code == 307
    assert "expired" in message.lower()
    assert fake.token_requests == []
    assert pending_store.count() == 0


@pytest.mark.parametrize(
    "payload",
    [["not", "an", "object"], {"access_token": "AT", "expires_in": "soon"}],
)
async def test_malformed_token_response_redirects_to_error(
    overrides, user_repo: UserRepository, payload
) -> None:
    fake, _ = overrides
    fake.token_payload = payload
    async with _client() as client:
        state = await _login(client)
        callback = await client.get(
            "/api/auth/spotify/callback", params={"code": "fake-code", "state": state}
        )

    assert callback.status_code == 307
    assert callback.headers["location"].startswith("http://testserver/api/auth/error?")
    assert user_repo.count() == 0


async def test_failed_post_callback_clears_state_cookie(overrides) -> None:
    verifier = generate_code_verifier()
    async with _client() as client:
        start = await client.get(
            "/api/auth/spotify/login",
            params={"code_challenge": generate_code_challenge(verifier)},
        )
        response = await client.post(
            "/api/auth/spotify/callback",
            json={"code": "fake-code", "state": start.json()["state"]},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "VerifierMissing"
    header = response.headers["set-cookie"]
    assert header.startswith("swipify_auth_state=")
    assert "Max-Age=0" in header


async def test_session_for_deleted_user_is_unauthenticated(overrides) -> None:
    session = get_signed_payload_encoder().encode(
        {"uid": "no-such-user", "iat": datetime.now(timezone.utc).isoformat()}
    )
    async with _client() as client:
        me = await client.get(
            "/api/users/me", headers={"cookie": f"swipify_session={session}"}
        )

    assert me.status_code == 401
    assert me.json()["error"] == "NotAuthenticated"
    assert me.json()["login_url"] == "http://testserver/api/auth/spotify/login"
