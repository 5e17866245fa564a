"""Group and membership records returned by the group repository."""

from datetime import datetime

from pydantic import BaseModel

from groupauth.authz.roles import Role


class Group(BaseModel, frozen=True):
    id: int
    name: str
    handle: str
    members_can_add_members: bool = False
    members_can_create_subgroups: bool = False
    archived_at: datetime | None = None
    created_by: int | None = None


class Membership(BaseModel, frozen=True):
    """A user's relationship to a group. Pending until ``accepted_at`` is set."""

    id: int
    group_id: int
    user_id: int
    role: Role
    inviter_id: int | None = None
    accepted_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    @property
    def is_active_admin(self) -> bool:
        return self.is_accepted and self.role is Role.ADMIN
