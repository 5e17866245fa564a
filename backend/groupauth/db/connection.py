"""SQLite database connection and schema management."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

LAST_ADMIN_TRIGGER_MESSAGE = "Cannot remove or demote the last administrator of a group"

_SCHEMA_SQL = f"""\
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL,
    name TEXT NOT NULL,
    username TEXT NOT NULL,
    key TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    email_verified INTEGER NOT NULL DEFAULT 0,
    deactivated_at TEXT,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email ON users (email COLLATE NOCASE);
CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username ON users (username);
CREATE UNIQUE INDEX IF NOT EXISTS idx_users_key ON users (key);

CREATE TABLE IF NOT EXISTS user_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    handle TEXT NOT NULL,
    members_can_add_members INTEGER NOT NULL DEFAULT 0,
    members_can_create_subgroups INTEGER NOT NULL DEFAULT 0,
    archived_at TEXT,
    created_by INTEGER,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_user_groups_handle ON user_groups (handle);

CREATE TABLE IF NOT EXISTS memberships (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    group_id INTEGER NOT NULL REFERENCES user_groups (id),
    user_id INTEGER NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('admin', 'member')),
    inviter_id INTEGER,
    accepted_at TEXT,
    created_at TEXT NOT NULL,
    updated_by INTEGER
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_memberships_group_user ON memberships (group_id, user_id);

CREATE TRIGGER IF NOT EXISTS trg_memberships_last_admin_update
BEFORE UPDATE OF role ON memberships
WHEN OLD.role = 'admin' AND NEW.role <> 'admin' AND OLD.accepted_at IS NOT NULL
    AND (SELECT COUNT(*) FROM memberships
         WHERE group_id = OLD.group_id AND role = 'admin' AND accepted_at IS NOT NULL) <= 1
BEGIN
    SELECT RAISE(ABORT, '{LAST_ADMIN_TRIGGER_MESSAGE}');
END;

CREATE TRIGGER IF NOT EXISTS trg_memberships_last_admin_delete
BEFORE DELETE ON memberships
WHEN OLD.role = 'admin' AND OLD.accepted_at IS NOT NULL
    AND (SELECT COUNT(*) FROM memberships
         WHERE group_id = OLD.group_id AND role = 'admin' AND accepted_at IS NOT NULL) <= 1
BEGIN
    SELECT RAISE(ABORT, '{LAST_ADMIN_TRIGGER_MESSAGE}');
END;
"""


class Database:
    """SQLite database wrapper with schema management.

    The connection runs in autocommit mode; multi-statement writes open
    explicit transactions (see SqliteGroupRepository.transaction).
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions."""
        parent = Path(self._path).parent
        parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _harden_permissions(self) -> None:
        """Set restrictive file permissions on POSIX systems (best effort).

        Hardens the main DB file and WAL/SHM sibling files created by WAL mode,
        since they also contain database content (password hashes).
        """
        if os.name != "posix":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
