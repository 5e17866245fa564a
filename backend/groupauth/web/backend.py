"""Starlette AuthenticationBackend that resolves session cookies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from groupauth.auth.session_store import SessionStore


class AuthenticatedUser(BaseUser):
    """Authenticated user for Starlette's request.user."""

    def __init__(self, user_id: int, token: str) -> None:
        self._user_id = user_id
        self._token = token

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return str(self._user_id)

    @property
    def identity(self) -> str:
        return str(self._user_id)

    @property
    def user_id(self) -> int:
        return self._user_id

    @property
    def token(self) -> str:
        return self._token


class SessionCookieBackend(AuthenticationBackend):
    """Authenticate requests by looking up the session cookie in the store.

    Missing, unknown, and expired tokens all leave the request anonymous.
    The cookie name comes from ``AuthSettings.session_cookie_name``.
    """

    def __init__(self, session_store: SessionStore, *, cookie_name: str) -> None:
        self._session_store = session_store
        self._cookie_name = cookie_name

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedUser] | None:
        session = self._session_store.get(conn.cookies.get(self._cookie_name))
        if session is None:
            return None
        return AuthCredentials(["authenticated"]), AuthenticatedUser(session.user_id, session.token)
