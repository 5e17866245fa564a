"""Starlette integration: session cookie backend and cookie helpers."""

from groupauth.web.backend import AuthenticatedUser, SessionCookieBackend
from groupauth.web.cookies import clear_session_cookie, set_session_cookie

__all__ = [
    "AuthenticatedUser",
    "SessionCookieBackend",
    "clear_session_cookie",
    "set_session_cookie",
]
