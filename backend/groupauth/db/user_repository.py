"""SQLite-backed user repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from groupauth.auth.models import User
from groupauth.dal.user_repository import UserRepository
from groupauth.errors import ConflictError, NotFoundError, PersistenceError

if TYPE_CHECKING:
    from groupauth.auth.models import NewUser
    from groupauth.db.connection import Database

_USER_COLUMNS = "id, email, name, username, key, password_hash, email_verified, deactivated_at"


class SqliteUserRepository(UserRepository):
    """SQLite implementation of UserRepository.

    Inserts run under an asyncio lock and rely on the unique indexes on
    email, username, and key; a violation maps to ConflictError.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_user(self, user: NewUser) -> User:
        """Insert a user and return it with its assigned id."""
        async with self._lock:
            try:
                cursor = self._db.connection.execute(
                    "INSERT INTO users (email, name, username, key, password_hash, email_verified, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        user.email,
                        user.name,
                        user.username,
                        user.key,
                        user.password_hash,
                        int(user.email_verified),
                        datetime.now(tz=UTC).isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                error_msg = str(exc).lower()
                if "email" in error_msg:
                    raise ConflictError("Email already taken") from exc
                if "username" in error_msg:
                    raise ConflictError(f"Username '{user.username}' already taken") from exc
                raise PersistenceError("create_user") from exc
            except sqlite3.Error as exc:
                raise PersistenceError("create_user") from exc
        return await self.find_user_by_id(cursor.lastrowid)

    async def find_user_by_id(self, user_id: int) -> User:
        return self._fetch_one("find_user_by_id", "id = ?", user_id)

    async def find_user_by_email(self, email: str) -> User:
        """Look up a user by email (case-insensitive)."""
        return self._fetch_one("find_user_by_email", "email = ? COLLATE NOCASE", email)

    async def find_user_by_key(self, key: str) -> User:
        return self._fetch_one("find_user_by_key", "key = ?", key)

    async def email_exists(self, email: str) -> bool:
        return self._exists("email_exists", "email = ? COLLATE NOCASE", email)

    async def username_exists(self, username: str) -> bool:
        return self._exists("username_exists", "username = ?", username)

    async def key_exists(self, key: str) -> bool:
        return self._exists("key_exists", "key = ?", key)

    async def set_email_verified(self, user_id: int, *, verified: bool = True) -> None:
        self._execute(
            "set_email_verified",
            "UPDATE users SET email_verified = ? WHERE id = ?",
            (int(verified), user_id),
        )

    async def deactivate(self, user_id: int) -> None:
        self._execute(
            "deactivate",
            "UPDATE users SET deactivated_at = ? WHERE id = ?",
            (datetime.now(tz=UTC).isoformat(), user_id),
        )

    def _fetch_one(self, operation: str, where: str, value: object) -> User:
        try:
            row = self._db.connection.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE {where}",  # noqa: S608
                (value,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(operation) from exc
        if row is None:
            raise NotFoundError(f"User not found ({operation})")
        data = dict(row)
        data["email_verified"] = bool(data["email_verified"])
        return User.model_validate(data)

    def _exists(self, operation: str, where: str, value: object) -> bool:
        try:
            row = self._db.connection.execute(
                f"SELECT 1 FROM users WHERE {where} LIMIT 1",  # noqa: S608
                (value,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(operation) from exc
        return row is not None

    def _execute(self, operation: str, sql: str, params: tuple[object, ...]) -> None:
        try:
            cursor = self._db.connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(operation) from exc
        if cursor.rowcount == 0:
            raise NotFoundError(f"User not found ({operation})")
