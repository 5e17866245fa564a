"""SQLite-backed group and membership repository."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from groupauth.dal.group_repository import GroupRepository, MembershipTransaction
from groupauth.dal.models import Group, Membership
from groupauth.db.connection import LAST_ADMIN_TRIGGER_MESSAGE
from groupauth.errors import ConflictError, LastAdminRejectedError, NotFoundError, PersistenceError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from groupauth.authz.roles import Role
    from groupauth.db.connection import Database

logger = structlog.get_logger()

_GROUP_COLUMNS = (
    "id, name, handle, members_can_add_members, members_can_create_subgroups, archived_at, created_by"
)
_MEMBERSHIP_COLUMNS = "id, group_id, user_id, role, inviter_id, accepted_at, created_at"


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


def _group_from_row(row: sqlite3.Row) -> Group:
    data = dict(row)
    data["members_can_add_members"] = bool(data["members_can_add_members"])
    data["members_can_create_subgroups"] = bool(data["members_can_create_subgroups"])
    return Group.model_validate(data)


def _membership_from_row(row: sqlite3.Row) -> Membership:
    return Membership.model_validate(dict(row))


@contextlib.contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Map sqlite3 errors onto the persistence error taxonomy."""
    try:
        yield
    except sqlite3.IntegrityError as exc:
        message = str(exc)
        if LAST_ADMIN_TRIGGER_MESSAGE in message:
            raise LastAdminRejectedError(operation) from exc
        if "memberships.group_id, memberships.user_id" in message:
            raise ConflictError("User is already a member of this group") from exc
        if "user_groups.handle" in message:
            raise ConflictError("Handle already taken") from exc
        raise PersistenceError(operation) from exc
    except sqlite3.Error as exc:
        raise PersistenceError(operation) from exc


class SqliteMembershipTransaction(MembershipTransaction):
    """Membership writes inside one open SQLite transaction.

    The last-admin triggers run inside the same transaction as each write,
    so the admin count they observe cannot change underneath them.
    """

    def __init__(self, conn: sqlite3.Connection, actor_id: int) -> None:
        self._conn = conn
        self.actor_id = actor_id

    async def create_group(
        self,
        name: str,
        handle: str,
        *,
        members_can_add_members: bool = False,
        members_can_create_subgroups: bool = False,
    ) -> Group:
        with _translate_errors("create_group"):
            row = self._conn.execute(
                "INSERT INTO user_groups "
                "(name, handle, members_can_add_members, members_can_create_subgroups, created_by, created_at) "
                f"VALUES (?, ?, ?, ?, ?, ?) RETURNING {_GROUP_COLUMNS}",  # noqa: S608
                (
                    name,
                    handle,
                    int(members_can_add_members),
                    int(members_can_create_subgroups),
                    self.actor_id,
                    _now(),
                ),
            ).fetchone()
        return _group_from_row(row)

    async def create_membership(
        self,
        group_id: int,
        user_id: int,
        role: Role,
        *,
        accepted: bool = False,
    ) -> Membership:
        now = _now()
        with _translate_errors("create_membership"):
            row = self._conn.execute(
                "INSERT INTO memberships (group_id, user_id, role, inviter_id, accepted_at, created_at, updated_by) "
                f"VALUES (?, ?, ?, ?, ?, ?, ?) RETURNING {_MEMBERSHIP_COLUMNS}",  # noqa: S608
                (group_id, user_id, role.value, self.actor_id, now if accepted else None, now, self.actor_id),
            ).fetchone()
        return _membership_from_row(row)

    async def update_membership_role(self, membership_id: int, role: Role) -> Membership:
        with _translate_errors("update_membership_role"):
            row = self._conn.execute(
                "UPDATE memberships SET role = ?, updated_by = ? "
                f"WHERE id = ? RETURNING {_MEMBERSHIP_COLUMNS}",  # noqa: S608
                (role.value, self.actor_id, membership_id),
            ).fetchone()
        if row is None:
            raise NotFoundError("Membership not found")
        return _membership_from_row(row)

    async def delete_membership(self, membership_id: int) -> None:
        with _translate_errors("delete_membership"):
            cursor = self._conn.execute("DELETE FROM memberships WHERE id = ?", (membership_id,))
        if cursor.rowcount == 0:
            raise NotFoundError("Membership not found")

    async def accept_membership(self, membership_id: int) -> Membership:
        with _translate_errors("accept_membership"):
            row = self._conn.execute(
                "UPDATE memberships SET accepted_at = COALESCE(accepted_at, ?), updated_by = ? "
                f"WHERE id = ? RETURNING {_MEMBERSHIP_COLUMNS}",  # noqa: S608
                (_now(), self.actor_id, membership_id),
            ).fetchone()
        if row is None:
            raise NotFoundError("Membership not found")
        return _membership_from_row(row)


class SqliteGroupRepository(GroupRepository):
    """SQLite implementation of GroupRepository.

    Transactions are serialized with an asyncio lock and opened with
    BEGIN IMMEDIATE, which also serializes writers across processes sharing
    the database file.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def find_group_by_id(self, group_id: int) -> Group:
        with _translate_errors("find_group_by_id"):
            row = self._db.connection.execute(
                f"SELECT {_GROUP_COLUMNS} FROM user_groups WHERE id = ?",  # noqa: S608
                (group_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError("Group not found")
        return _group_from_row(row)

    async def handle_exists(self, handle: str) -> bool:
        with _translate_errors("handle_exists"):
            row = self._db.connection.execute(
                "SELECT 1 FROM user_groups WHERE handle = ? LIMIT 1",
                (handle,),
            ).fetchone()
        return row is not None

    async def find_membership(self, group_id: int, user_id: int) -> Membership:
        with _translate_errors("find_membership"):
            row = self._db.connection.execute(
                f"SELECT {_MEMBERSHIP_COLUMNS} FROM memberships WHERE group_id = ? AND user_id = ?",  # noqa: S608
                (group_id, user_id),
            ).fetchone()
        if row is None:
            raise NotFoundError("Membership not found")
        return _membership_from_row(row)

    async def find_membership_by_id(self, membership_id: int) -> Membership:
        with _translate_errors("find_membership_by_id"):
            row = self._db.connection.execute(
                f"SELECT {_MEMBERSHIP_COLUMNS} FROM memberships WHERE id = ?",  # noqa: S608
                (membership_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError("Membership not found")
        return _membership_from_row(row)

    async def count_admins_in_group(self, group_id: int) -> int:
        with _translate_errors("count_admins_in_group"):
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM memberships WHERE group_id = ? AND role = 'admin' AND accepted_at IS NOT NULL",
                (group_id,),
            ).fetchone()
        return int(row[0])

    async def set_archived(self, group_id: int, *, archived: bool = True) -> None:
        with _translate_errors("set_archived"):
            self._db.connection.execute(
                "UPDATE user_groups SET archived_at = ? WHERE id = ?",
                (_now() if archived else None, group_id),
            )

    @contextlib.asynccontextmanager
    async def transaction(self, actor_id: int) -> AsyncIterator[SqliteMembershipTransaction]:
        """Open a write transaction attributed to ``actor_id``.

        Commits on normal exit and rolls back on any exception. Other
        transactions on this repository wait on the lock until this one ends.
        The connection is shared with plain reads and with
        SqliteUserRepository, so the body must not await anything besides
        the transaction's own methods: a real suspension would let other
        coroutines' statements run inside the open transaction.
        """
        async with self._lock:
            conn = self._db.connection
            with _translate_errors("begin"):
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield SqliteMembershipTransaction(conn, actor_id)
                with _translate_errors("commit"):
                    conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            logger.debug("membership transaction committed", actor_id=actor_id)
