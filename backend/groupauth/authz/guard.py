"""Two-layer enforcement of the "every group keeps an admin" invariant.

The pre-check counts admins before any write and rejects early when the
target is the only one. It is not race-free: two concurrent demotions can
both observe two admins. The store therefore re-checks the invariant inside
the write transaction and rejects with LastAdminRejectedError; the guard maps
that rejection onto the same LastAdminViolation the pre-check raises. The two
paths log different events so races can be monitored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog

from groupauth.authz.roles import Role
from groupauth.errors import LastAdminViolation, PersistenceError, is_last_admin_rejection

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from groupauth.dal.group_repository import GroupRepository, MembershipTransaction
    from groupauth.dal.models import Membership

logger = structlog.get_logger()

T = TypeVar("T")


class LastAdminGuard:
    """Run admin-reducing membership writes under the last-admin protocol."""

    def __init__(self, repo: GroupRepository) -> None:
        self._repo = repo

    async def run(
        self,
        target: Membership,
        actor_id: int,
        mutation: Callable[[MembershipTransaction], Awaitable[T]],
        *,
        operation: str,
    ) -> T:
        """Apply ``mutation`` in a transaction if it cannot strand the group.

        ``mutation`` must only await methods of the transaction it is given.

        The pre-check is skipped when ``target`` is not an accepted admin,
        since removing it cannot reduce the admin count. The store's own
        check still applies to the write.
        """
        log = logger.bind(operation=operation, group_id=target.group_id, membership_id=target.id, actor_id=actor_id)

        if target.is_active_admin:
            admin_count = await self._repo.count_admins_in_group(target.group_id)
            if admin_count <= 1:
                log.info("last admin pre-check rejected", admin_count=admin_count)
                raise LastAdminViolation(target.group_id, source="precheck")

        try:
            async with self._repo.transaction(actor_id) as tx:
                return await mutation(tx)
        except PersistenceError as e:
            if is_last_admin_rejection(e):
                log.warning("last admin rejected by store")
                raise LastAdminViolation(target.group_id, source="authoritative") from e
            log.error("membership write failed", error=str(e))
            raise

    async def demote(self, target: Membership, actor_id: int) -> Membership:
        return await self.run(
            target,
            actor_id,
            lambda tx: tx.update_membership_role(target.id, Role.MEMBER),
            operation="demote_member",
        )

    async def remove(self, target: Membership, actor_id: int) -> None:
        await self.run(
            target,
            actor_id,
            lambda tx: tx.delete_membership(target.id),
            operation="remove_member",
        )
