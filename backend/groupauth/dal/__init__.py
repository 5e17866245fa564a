"""Data access layer: repository interfaces and shared persistence models."""

from groupauth.dal.group_repository import GroupRepository, MembershipTransaction
from groupauth.dal.models import Group, Membership
from groupauth.dal.user_repository import UserRepository

__all__ = [
    "Group",
    "GroupRepository",
    "Membership",
    "MembershipTransaction",
    "UserRepository",
]
