"""SQLite persistence: connection management and repository implementations."""

from groupauth.db.connection import Database
from groupauth.db.group_repository import SqliteGroupRepository
from groupauth.db.user_repository import SqliteUserRepository

__all__ = [
    "Database",
    "SqliteGroupRepository",
    "SqliteUserRepository",
]
