"""
FastAPI routes for the Swipify authentication service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from swipify.core.config import AppSettings
from swipify.core.errors import (
    AuthFlowError,
    ConfigMissingError,
    NoRefreshTokenError,
    NotAuthenticatedError,
    ReauthRequiredError,
)
from swipify.dependencies import (
    get_app_settings,
    get_login_service,
    get_session_manager,
    get_token_service,
    get_user_repository,
    require_user_id,
)
from swipify.schemas import (
    AuthErrorPage,
    LoginCompleteResponse,
    LoginStartResponse,
    OAuthCallbackPayload,
    PublicUser,
    TokenRefreshResponse,
)
from swipify.services import (
    CallbackParams,
    SessionManager,
    SpotifyLoginService,
    SpotifyTokenService,
    UserRepository,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_REASON = {
    "TokenExchangeFailed": HTTPStatus.BAD_GATEWAY,
    "ProfileFetchFailed": HTTPStatus.BAD_GATEWAY,
    "NoRefreshToken": HTTPStatus.UNAUTHORIZED,
    "ReauthRequired": HTTPStatus.UNAUTHORIZED,
    "NotAuthenticated": HTTPStatus.UNAUTHORIZED,
    "ConfigMissing": HTTPStatus.INTERNAL_SERVER_ERROR,
}

_DEFAULT_ERROR_MESSAGE = "Authentication failed, please try again."


async def auth_error_response(request: Request, exc: AuthFlowError) -> JSONResponse:
    """Translate flow errors raised by JSON endpoints into error bodies."""
    status_code = _STATUS_BY_REASON.get(exc.reason, HTTPStatus.BAD_REQUEST)
    content = {"error": exc.reason, "message": exc.user_message}
    if isinstance(exc, (ReauthRequiredError, NoRefreshTokenError, NotAuthenticatedError)):
        content["login_url"] = str(request.url_for("start_spotify_login"))
    return JSONResponse(status_code=status_code, content=content)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _frontend_url(settings: AppSettings, path: str) -> str | None:
    if not settings.frontend_base_url:
        return None
    return str(settings.frontend_base_url).rstrip("/") + path


def _error_redirect(
    request: Request, settings: AppSettings, exc: AuthFlowError
) -> RedirectResponse:
    base = _frontend_url(settings, settings.login_error_path) or str(
        request.url_for("auth_error_page")
    )
    query = urlencode({"message": exc.user_message})
    return RedirectResponse(
        url=f"{base}?{query}", status_code=HTTPStatus.TEMPORARY_REDIRECT
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/spotify/login", status_code=HTTPStatus.OK)
async def start_spotify_login(
    request: Request,
    login_service: Annotated[SpotifyLoginService, Depends(get_login_service)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    code_challenge: str | None = Query(
        default=None,
        description="S256 challenge when the client keeps its own PKCE verifier.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Spotify consent screen.",
    ),
):
    """
    Kick off a login attempt: store the pending login, bind its state to this
    browser and hand out the Spotify authorization URL.
    """
    try:
        start = login_service.start_login(
            code_challenge=code_challenge,
            previous_state=sessions.read_login_state(request),
        )
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except ConfigMissingError as exc:
        logger.error("Cannot start Spotify login: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=exc.user_message,
        ) from exc

    if not start.client_held and (redirect or _wants_html(request)):
        response = RedirectResponse(
            url=start.authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        body = LoginStartResponse(
            authorization_url=start.authorization_url, state=start.state
        )
        response = JSONResponse(content=body.model_dump())

    sessions.bind_login_state(response, start.state)
    return response


@router.get("/auth/spotify/callback")
async def handle_spotify_callback(
    request: Request,
    login_service: Annotated[SpotifyLoginService, Depends(get_login_service)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code."),
    state: str | None = Query(default=None, description="State issued at login."),
    error: str | None = Query(default=None, description="Error relayed by Spotify."),
) -> RedirectResponse:
    """Complete a browser login and redirect to the landing or error page."""
    landing = _frontend_url(settings, settings.login_success_path) or str(
        request.url_for("read_current_user")
    )
    response = RedirectResponse(url=landing, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    params = CallbackParams(
        code=code,
        state=state,
        error=error,
        expected_state=sessions.read_login_state(request),
    )

    try:
        await login_service.complete_login(
            params,
            establish_session=lambda user: sessions.issue(response, user.id),
        )
    except AuthFlowError as exc:
        response = _error_redirect(request, settings, exc)

    sessions.clear_login_state(response)
    return response


@router.post(
    "/auth/spotify/callback",
    response_model=LoginCompleteResponse,
    status_code=HTTPStatus.OK,
)
async def complete_spotify_callback(
    payload: OAuthCallbackPayload,
    request: Request,
    response: Response,
    login_service: Annotated[SpotifyLoginService, Depends(get_login_service)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> LoginCompleteResponse | JSONResponse:
    """Complete a login for clients that relay the redirect and hold the verifier."""
    params = CallbackParams(
        code=payload.code,
        state=payload.state,
        error=payload.error,
        code_verifier=payload.code_verifier,
        expected_state=sessions.read_login_state(request),
    )
    try:
        result = await login_service.complete_login(
            params,
            establish_session=lambda user: sessions.issue(response, user.id),
        )
    except AuthFlowError as exc:
        error_response = await auth_error_response(request, exc)
        sessions.clear_login_state(error_response)
        return error_response

    sessions.clear_login_state(response)
    return LoginCompleteResponse(user=PublicUser.from_user(result.user))


@router.post(
    "/auth/spotify/refresh",
    response_model=TokenRefreshResponse,
    status_code=HTTPStatus.OK,
)
async def refresh_spotify_token(
    user_id: Annotated[str, Depends(require_user_id)],
    token_service: Annotated[SpotifyTokenService, Depends(get_token_service)],
) -> TokenRefreshResponse:
    """Mint a new access token for the session user."""
    tokens = await token_service.refresh(user_id=user_id)
    return TokenRefreshResponse(access_token=tokens.access_token, expires_in=tokens.expires_in)


@router.post("/auth/spotify/logout", status_code=HTTPStatus.OK)
async def logout(
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> JSONResponse:
    response = JSONResponse(content={"success": True})
    sessions.clear(response)
    return response


@router.get("/auth/spotify/logout")
async def logout_redirect(
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> RedirectResponse:
    response = RedirectResponse(url="/", status_code=HTTPStatus.TEMPORARY_REDIRECT)
    sessions.clear(response)
    return response


@router.get("/auth/error", response_model=AuthErrorPage)
async def auth_error_page(
    request: Request,
    message: str | None = Query(default=None),
) -> AuthErrorPage:
    """Describe a failed login when no front-end error page is configured."""
    return AuthErrorPage(
        message=message or _DEFAULT_ERROR_MESSAGE,
        retry_url=str(request.url_for("start_spotify_login")),
    )


@router.get("/users/me", response_model=PublicUser)
async def read_current_user(
    user_id: Annotated[str, Depends(require_user_id)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> PublicUser:
    """Return the session user without token material."""
    user = users.get_by_id(user_id)
    if user is None:
        raise NotAuthenticatedError(f"Session refers to unknown user {user_id}.")
    return PublicUser.from_user(user)


__all__ = ["auth_error_response", "router"]
