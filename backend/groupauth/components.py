"""Construction and lifecycle of the shared auth components."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from groupauth.auth.password import get_hasher
from groupauth.auth.service import AuthService
from groupauth.auth.session_store import SessionStore
from groupauth.authz.memberships import MembershipService
from groupauth.db import Database, SqliteGroupRepository, SqliteUserRepository
from groupauth.settings import AuthSettings
from groupauth.web.backend import SessionCookieBackend

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthComponents:
    """Everything request handlers share; built once per process."""

    db: Database
    users: SqliteUserRepository
    groups: SqliteGroupRepository
    sessions: SessionStore
    auth_service: AuthService
    memberships: MembershipService
    web_backend: SessionCookieBackend


def build_components(settings: AuthSettings | None = None) -> AuthComponents:
    if settings is None:  # pragma: no cover
        settings = AuthSettings()

    db = Database(settings.database_path)
    db.connect()
    users = SqliteUserRepository(db)
    groups = SqliteGroupRepository(db)
    sessions = SessionStore(
        duration_seconds=settings.session_duration_seconds,
        cleanup_interval_seconds=settings.session_cleanup_interval_seconds,
    )
    auth_service = AuthService(users, sessions, password_hasher=get_hasher(settings.password_hasher))
    return AuthComponents(
        db=db,
        users=users,
        groups=groups,
        sessions=sessions,
        auth_service=auth_service,
        memberships=MembershipService(groups),
        web_backend=SessionCookieBackend(sessions, cookie_name=settings.session_cookie_name),
    )


@contextlib.asynccontextmanager
async def running(components: AuthComponents) -> AsyncIterator[AuthComponents]:
    """Run the session sweep for the lifetime of the block, then release resources."""
    components.sessions.start_cleanup()
    logger.info("auth components started")
    try:
        yield components
    finally:
        await components.sessions.stop_cleanup()
        components.db.close()
        logger.info("auth components stopped")
