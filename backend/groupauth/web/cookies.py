"""Session cookie framing for Starlette responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.responses import Response

    from groupauth.auth.models import Session
    from groupauth.settings import AuthSettings


def set_session_cookie(response: Response, session: Session, settings: AuthSettings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        session.token,
        max_age=int(session.expires_at - session.created_at),
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: AuthSettings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
