"""Shared fixtures: a temporary SQLite database with user and group repositories."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

import pytest

from groupauth.auth.models import NewUser
from groupauth.auth.session_store import SessionStore
from groupauth.db import Database, SqliteGroupRepository, SqliteUserRepository

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from groupauth.auth.models import User

_user_counter = itertools.count(1)


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def user_repo(db: Database) -> SqliteUserRepository:
    return SqliteUserRepository(db)


@pytest.fixture
def group_repo(db: Database) -> SqliteGroupRepository:
    return SqliteGroupRepository(db)


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def make_user(user_repo: SqliteUserRepository) -> Callable[..., Awaitable[User]]:
    """Insert a verified user with a unique email, username, and key."""

    async def _make(name: str = "user", *, email_verified: bool = True) -> User:
        n = next(_user_counter)
        return await user_repo.create_user(
            NewUser(
                email=f"{name}{n}@example.com",
                name=name.title(),
                username=f"{name}-{n}",
                key=f"key-{n}",
                password_hash="simple$placeholder",
                email_verified=email_verified,
            ),
        )

    return _make
