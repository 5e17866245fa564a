"""Per-request authorization state for a user within one group."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from groupauth.errors import NotFoundError

if TYPE_CHECKING:
    from groupauth.authz.roles import Role
    from groupauth.dal.group_repository import GroupRepository
    from groupauth.dal.models import Group, Membership


@dataclass(frozen=True)
class AuthorizationContext:
    """Caller's standing in a group, derived fresh for each request.

    Only an accepted membership counts: a pending invitation leaves both
    ``is_member`` and ``is_admin`` false. The capability predicates are pure
    functions of this state. Admins bypass the group's member-permission
    flags regardless of how those flags are set.
    """

    user_id: int
    group: Group
    membership: Membership | None = None
    is_member: bool = False
    is_admin: bool = False

    @classmethod
    async def load(cls, repo: GroupRepository, user_id: int, group_id: int) -> AuthorizationContext:
        """Load the group and the user's membership in it.

        NotFoundError for the group propagates. A missing membership is not an
        error; any other persistence failure propagates.
        """
        group = await repo.find_group_by_id(group_id)
        try:
            membership = await repo.find_membership(group_id, user_id)
        except NotFoundError:
            return cls(user_id=user_id, group=group)

        if not membership.is_accepted:
            return cls(user_id=user_id, group=group)
        return cls(
            user_id=user_id,
            group=group,
            membership=membership,
            is_member=True,
            is_admin=membership.is_active_admin,
        )

    @property
    def role(self) -> Role | None:
        return self.membership.role if self.membership is not None else None

    def can_view_group(self) -> bool:
        return self.is_member

    def can_update_group(self) -> bool:
        return self.is_admin

    def can_archive_group(self) -> bool:
        return self.is_admin

    def can_manage_members(self) -> bool:
        """Promote, demote, or remove members."""
        return self.is_admin

    def can_invite_members(self) -> bool:
        if self.is_admin:
            return True
        return self.is_member and self.group.members_can_add_members

    def can_create_subgroups(self) -> bool:
        if self.is_admin:
            return True
        return self.is_member and self.group.members_can_create_subgroups
