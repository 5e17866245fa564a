"""Tests for the session cookie authentication backend and cookie helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from starlette.applications import Starlette
from starlette.authentication import AuthCredentials
from starlette.middleware import Middleware
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from groupauth.auth.models import Session
from groupauth.auth.session_store import SessionStore
from groupauth.settings import AuthSettings
from groupauth.web import AuthenticatedUser, SessionCookieBackend, clear_session_cookie, set_session_cookie

if TYPE_CHECKING:
    from starlette.requests import Request


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def backend(session_store: SessionStore) -> SessionCookieBackend:
    return SessionCookieBackend(session_store, cookie_name=AuthSettings().session_cookie_name)


def _conn(cookies: dict[str, str]) -> MagicMock:
    conn = MagicMock()
    conn.cookies = cookies
    return conn


class TestSessionCookieBackend:
    async def test_valid_cookie_returns_authenticated_tuple(self, backend, session_store):
        session = session_store.create(7)

        result = await backend.authenticate(_conn({"groupauth_session": session.token}))

        assert result is not None
        credentials, user = result
        assert isinstance(credentials, AuthCredentials)
        assert "authenticated" in credentials.scopes
        assert isinstance(user, AuthenticatedUser)
        assert user.is_authenticated
        assert user.user_id == 7
        assert user.identity == "7"
        assert user.token == session.token

    async def test_missing_cookie_returns_none(self, backend):
        assert await backend.authenticate(_conn({})) is None

    async def test_unknown_token_returns_none(self, backend):
        assert await backend.authenticate(_conn({"groupauth_session": "nonexistent"})) is None

    async def test_expired_session_returns_none(self, backend, session_store):
        session = session_store.create(7)

        with patch("groupauth.auth.session_store.time") as mock_time:
            mock_time.time.return_value = session.expires_at
            result = await backend.authenticate(_conn({"groupauth_session": session.token}))

        assert result is None

    async def test_custom_cookie_name(self, session_store):
        session = session_store.create(7)
        backend = SessionCookieBackend(session_store, cookie_name="sid")

        assert await backend.authenticate(_conn({"groupauth_session": session.token})) is None
        assert await backend.authenticate(_conn({"sid": session.token})) is not None


def _make_app(session_store: SessionStore, settings: AuthSettings | None = None) -> Starlette:
    settings = settings or AuthSettings()
    backend = SessionCookieBackend(session_store, cookie_name=settings.session_cookie_name)

    async def whoami(request: Request) -> PlainTextResponse:
        if not request.user.is_authenticated:
            return PlainTextResponse("anonymous")
        return PlainTextResponse(f"user {request.user.user_id}")

    return Starlette(
        routes=[Route("/whoami", whoami)],
        middleware=[Middleware(AuthenticationMiddleware, backend=backend)],
    )


class TestMiddlewareIntegration:
    def test_anonymous_without_cookie(self, session_store):
        with TestClient(_make_app(session_store)) as client:
            assert client.get("/whoami").text == "anonymous"

    def test_authenticated_with_cookie(self, session_store):
        session = session_store.create(42)

        with TestClient(_make_app(session_store)) as client:
            client.cookies.set("groupauth_session", session.token)
            assert client.get("/whoami").text == "user 42"

    def test_deleted_session_is_anonymous(self, session_store):
        session = session_store.create(42)
        session_store.delete(session.token)

        with TestClient(_make_app(session_store)) as client:
            client.cookies.set("groupauth_session", session.token)
            assert client.get("/whoami").text == "anonymous"

    def test_cookie_name_follows_settings(self, session_store):
        session = session_store.create(42)
        settings = AuthSettings(session_cookie_name="sid")

        with TestClient(_make_app(session_store, settings)) as client:
            client.cookies.set("groupauth_session", session.token)
            assert client.get("/whoami").text == "anonymous"
            client.cookies.set("sid", session.token)
            assert client.get("/whoami").text == "user 42"


class TestCookieHelpers:
    def _session(self) -> Session:
        return Session(token="tok123", user_id=1, created_at=1000.0, expires_at=1000.0 + 3600)

    def test_set_session_cookie(self):
        response = PlainTextResponse("ok")

        set_session_cookie(response, self._session(), AuthSettings(cookie_secure=True))

        header = response.headers["set-cookie"]
        assert header.startswith("groupauth_session=tok123")
        lowered = header.lower()
        assert "httponly" in lowered
        assert "max-age=3600" in lowered
        assert "path=/" in lowered
        assert "samesite=lax" in lowered
        assert "secure" in lowered

    def test_insecure_cookie_for_local_dev(self):
        response = PlainTextResponse("ok")

        set_session_cookie(response, self._session(), AuthSettings(cookie_secure=False))

        assert "secure" not in response.headers["set-cookie"].lower()

    def test_clear_session_cookie(self):
        response = PlainTextResponse("ok")

        clear_session_cookie(response, AuthSettings(session_cookie_name="sid"))

        header = response.headers["set-cookie"]
        assert header.startswith("sid=")
        assert "max-age=0" in header.lower()
