"""Tests for AuthorizationContext loading and capability predicates."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from groupauth.authz.context import AuthorizationContext
from groupauth.authz.roles import Role
from groupauth.dal.models import Group, Membership
from groupauth.errors import NotFoundError, PersistenceError

ACCEPTED = datetime(2025, 1, 1, tzinfo=UTC)


def _group(**flags: bool) -> Group:
    return Group(id=1, name="Team", handle="team", **flags)


def _membership(role: Role, *, accepted: bool = True) -> Membership:
    return Membership(id=10, group_id=1, user_id=5, role=role, accepted_at=ACCEPTED if accepted else None)


def _repo(group: Group | Exception, membership: Membership | Exception) -> MagicMock:
    repo = MagicMock()
    if isinstance(group, Exception):
        repo.find_group_by_id = AsyncMock(side_effect=group)
    else:
        repo.find_group_by_id = AsyncMock(return_value=group)
    if isinstance(membership, Exception):
        repo.find_membership = AsyncMock(side_effect=membership)
    else:
        repo.find_membership = AsyncMock(return_value=membership)
    return repo


class TestLoad:
    async def test_accepted_admin(self):
        ctx = await AuthorizationContext.load(_repo(_group(), _membership(Role.ADMIN)), 5, 1)

        assert ctx.is_member
        assert ctx.is_admin
        assert ctx.role is Role.ADMIN
        assert ctx.can_manage_members()

    async def test_accepted_member(self):
        ctx = await AuthorizationContext.load(_repo(_group(), _membership(Role.MEMBER)), 5, 1)

        assert ctx.is_member
        assert not ctx.is_admin
        assert ctx.role is Role.MEMBER

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.MEMBER])
    async def test_pending_membership_does_not_count(self, role):
        ctx = await AuthorizationContext.load(_repo(_group(), _membership(role, accepted=False)), 5, 1)

        assert not ctx.is_member
        assert not ctx.is_admin
        assert ctx.membership is None
        assert not ctx.can_view_group()

    async def test_missing_membership_is_not_an_error(self):
        ctx = await AuthorizationContext.load(_repo(_group(), NotFoundError("Membership not found")), 5, 1)

        assert ctx.group.id == 1
        assert not ctx.is_member
        assert ctx.role is None

    async def test_missing_group_propagates(self):
        repo = _repo(NotFoundError("Group not found"), _membership(Role.ADMIN))

        with pytest.raises(NotFoundError, match="Group not found"):
            await AuthorizationContext.load(repo, 5, 1)
        repo.find_membership.assert_not_awaited()

    async def test_membership_lookup_failure_propagates(self):
        repo = _repo(_group(), PersistenceError("find_membership"))

        with pytest.raises(PersistenceError):
            await AuthorizationContext.load(repo, 5, 1)

    async def test_load_against_sqlite(self, group_repo, make_user):
        admin = await make_user("admin")
        async with group_repo.transaction(admin.id) as tx:
            group = await tx.create_group("Team", "team")
            await tx.create_membership(group.id, admin.id, Role.ADMIN, accepted=True)

        ctx = await AuthorizationContext.load(group_repo, admin.id, group.id)
        assert ctx.is_admin


def _ctx(*, is_member: bool, is_admin: bool, **flags: bool) -> AuthorizationContext:
    return AuthorizationContext(user_id=5, group=_group(**flags), is_member=is_member, is_admin=is_admin)


class TestPredicates:
    def test_non_member_can_do_nothing(self):
        ctx = _ctx(is_member=False, is_admin=False, members_can_add_members=True, members_can_create_subgroups=True)

        assert not ctx.can_view_group()
        assert not ctx.can_update_group()
        assert not ctx.can_archive_group()
        assert not ctx.can_manage_members()
        assert not ctx.can_invite_members()
        assert not ctx.can_create_subgroups()

    def test_member_without_flags(self):
        ctx = _ctx(is_member=True, is_admin=False)

        assert ctx.can_view_group()
        assert not ctx.can_update_group()
        assert not ctx.can_archive_group()
        assert not ctx.can_manage_members()
        assert not ctx.can_invite_members()
        assert not ctx.can_create_subgroups()

    def test_member_invites_only_with_add_members_flag(self):
        assert _ctx(is_member=True, is_admin=False, members_can_add_members=True).can_invite_members()
        assert not _ctx(is_member=True, is_admin=False, members_can_add_members=False).can_invite_members()

    def test_member_creates_subgroups_only_with_flag(self):
        assert _ctx(is_member=True, is_admin=False, members_can_create_subgroups=True).can_create_subgroups()
        assert not _ctx(is_member=True, is_admin=False).can_create_subgroups()

    def test_admin_bypasses_member_flags(self):
        ctx = _ctx(is_member=True, is_admin=True, members_can_add_members=False, members_can_create_subgroups=False)

        assert ctx.can_view_group()
        assert ctx.can_update_group()
        assert ctx.can_archive_group()
        assert ctx.can_manage_members()
        assert ctx.can_invite_members()
        assert ctx.can_create_subgroups()
