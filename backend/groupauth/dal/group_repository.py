"""Abstract interface for group and membership persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import contextlib

    from groupauth.authz.roles import Role
    from groupauth.dal.models import Group, Membership


class MembershipTransaction(ABC):
    """Membership mutations executed inside one store transaction.

    The store must re-check the last-admin invariant atomically with
    ``update_membership_role`` and ``delete_membership`` and raise
    LastAdminRejectedError when the write would leave a group without an
    accepted admin.

    Callers should only await these methods inside the transaction; an
    implementation may share its connection with non-transactional reads.
    """

    actor_id: int

    @abstractmethod
    async def create_group(
        self,
        name: str,
        handle: str,
        *,
        members_can_add_members: bool = False,
        members_can_create_subgroups: bool = False,
    ) -> Group: ...

    @abstractmethod
    async def create_membership(
        self,
        group_id: int,
        user_id: int,
        role: Role,
        *,
        accepted: bool = False,
    ) -> Membership: ...

    @abstractmethod
    async def update_membership_role(self, membership_id: int, role: Role) -> Membership: ...

    @abstractmethod
    async def delete_membership(self, membership_id: int) -> None: ...

    @abstractmethod
    async def accept_membership(self, membership_id: int) -> Membership: ...


class GroupRepository(ABC):
    """Abstract interface for group and membership persistence.

    Lookups raise NotFoundError when no row matches; any other failure is a
    PersistenceError.
    """

    @abstractmethod
    async def find_group_by_id(self, group_id: int) -> Group: ...

    @abstractmethod
    async def handle_exists(self, handle: str) -> bool: ...

    @abstractmethod
    async def find_membership(self, group_id: int, user_id: int) -> Membership: ...

    @abstractmethod
    async def find_membership_by_id(self, membership_id: int) -> Membership: ...

    @abstractmethod
    async def count_admins_in_group(self, group_id: int) -> int:
        """Count accepted memberships with the admin role."""

    @abstractmethod
    def transaction(self, actor_id: int) -> contextlib.AbstractAsyncContextManager[MembershipTransaction]:
        """Open a transaction attributed to ``actor_id``; commit on exit, roll back on error."""
