"""Session dependencies for routes that need the current user."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from swipify.core.errors import NotAuthenticatedError
from swipify.dependencies.clients import get_session_manager
from swipify.services import SessionManager


def get_current_user_id(
    request: Request,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> Optional[str]:
    """Return the session user id, or None for anonymous requests."""
    return sessions.read(request)


def require_user_id(
    user_id: Annotated[Optional[str], Depends(get_current_user_id)],
) -> str:
    """Reject anonymous requests."""
    if not user_id:
        raise NotAuthenticatedError()
    return user_id


__all__ = ["get_current_user_id", "require_user_id"]
