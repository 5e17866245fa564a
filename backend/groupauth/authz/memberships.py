"""Group and membership operations gated by AuthorizationContext."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from groupauth.auth.audit import log_persistence_error
from groupauth.auth.identifiers import generate_unique_handle, is_valid_handle
from groupauth.authz.context import AuthorizationContext
from groupauth.authz.guard import LastAdminGuard
from groupauth.authz.roles import Role, parse_role
from groupauth.errors import ConflictError, NotFoundError, PermissionDeniedError, PersistenceError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from groupauth.dal.group_repository import GroupRepository
    from groupauth.dal.models import Group, Membership


@contextlib.contextmanager
def _logging_persistence_errors() -> Iterator[None]:
    try:
        yield
    except PersistenceError as e:
        log_persistence_error(e.operation, e)
        raise


class MembershipService:
    """Create groups and manage memberships on behalf of an acting user.

    Every write runs in a repository transaction attributed to the actor.
    Demotions and removals of admins go through LastAdminGuard, which logs
    its own write failures. Any other persistence failure is logged here by
    operation name and re-raised.
    """

    def __init__(self, group_repo: GroupRepository) -> None:
        self._repo = group_repo
        self._guard = LastAdminGuard(group_repo)

    async def authorize(self, actor_id: int, group_id: int) -> AuthorizationContext:
        with _logging_persistence_errors():
            return await AuthorizationContext.load(self._repo, actor_id, group_id)

    async def create_group(
        self,
        actor_id: int,
        name: str,
        *,
        handle: str | None = None,
        members_can_add_members: bool = False,
        members_can_create_subgroups: bool = False,
    ) -> tuple[Group, Membership]:
        """Create a group with the actor as its first, accepted admin."""
        name = name.strip()
        if not name:
            raise ValidationError("Name is required", field="name")

        with _logging_persistence_errors():
            if handle:
                handle = handle.strip().lower()
                if not is_valid_handle(handle):
                    raise ValidationError(
                        "Handle must be 3-100 characters, start and end with alphanumeric, "
                        "contain only lowercase letters, numbers, and hyphens",
                        field="handle",
                    )
                if await self._repo.handle_exists(handle):
                    raise ConflictError("Handle already taken")
            else:
                handle = await generate_unique_handle(name, self._repo.handle_exists)
                if not handle:
                    raise ValidationError(
                        "Name is too short to generate a handle (need at least 3 alphanumeric characters)",
                        field="handle",
                    )

            async with self._repo.transaction(actor_id) as tx:
                group = await tx.create_group(
                    name,
                    handle,
                    members_can_add_members=members_can_add_members,
                    members_can_create_subgroups=members_can_create_subgroups,
                )
                membership = await tx.create_membership(group.id, actor_id, Role.ADMIN, accepted=True)
        return group, membership

    async def invite(self, actor_id: int, group_id: int, user_id: int, role: str | Role = Role.MEMBER) -> Membership:
        """Create a pending membership for ``user_id``."""
        parsed = parse_role(role)
        with _logging_persistence_errors():
            ctx = await AuthorizationContext.load(self._repo, actor_id, group_id)
            if not ctx.can_invite_members():
                raise PermissionDeniedError("Not authorized to invite members")
            if parsed is Role.ADMIN and not ctx.is_admin:
                raise PermissionDeniedError("Only admins can invite admins")
            _ensure_not_archived(ctx.group)

            try:
                await self._repo.find_membership(group_id, user_id)
            except NotFoundError:
                pass
            else:
                raise ConflictError("User is already a member of this group")

            async with self._repo.transaction(actor_id) as tx:
                return await tx.create_membership(group_id, user_id, parsed)

    async def accept(self, actor_id: int, membership_id: int) -> Membership:
        """Accept a pending invitation. Only the invitee may accept."""
        with _logging_persistence_errors():
            membership = await self._repo.find_membership_by_id(membership_id)
            if membership.user_id != actor_id:
                raise PermissionDeniedError("Cannot accept another user's invitation")
            if membership.is_accepted:
                raise ConflictError("Invitation already accepted")

            async with self._repo.transaction(actor_id) as tx:
                return await tx.accept_membership(membership_id)

    async def promote(self, actor_id: int, membership_id: int) -> Membership:
        membership = await self._load_managed(actor_id, membership_id, "promote")
        if membership.role is Role.ADMIN:
            raise ConflictError("Member is already an admin")

        with _logging_persistence_errors():
            async with self._repo.transaction(actor_id) as tx:
                return await tx.update_membership_role(membership_id, Role.ADMIN)

    async def demote(self, actor_id: int, membership_id: int) -> Membership:
        membership = await self._load_managed(actor_id, membership_id, "demote")
        if membership.role is Role.MEMBER:
            raise ConflictError("Member is already a regular member")
        return await self._guard.demote(membership, actor_id)

    async def remove(self, actor_id: int, membership_id: int) -> None:
        membership = await self._load_managed(actor_id, membership_id, "remove")
        await self._guard.remove(membership, actor_id)

    async def _load_managed(self, actor_id: int, membership_id: int, action: str) -> Membership:
        with _logging_persistence_errors():
            membership = await self._repo.find_membership_by_id(membership_id)
            ctx = await AuthorizationContext.load(self._repo, actor_id, membership.group_id)
        if not ctx.can_manage_members():
            raise PermissionDeniedError(f"Only admins can {action} members")
        _ensure_not_archived(ctx.group)
        return membership


def _ensure_not_archived(group: Group) -> None:
    if group.archived_at is not None:
        raise ConflictError("Group is archived")
