"""Group authorization: roles, per-request context, and the last-admin guard."""

from groupauth.authz.context import AuthorizationContext
from groupauth.authz.guard import LastAdminGuard
from groupauth.authz.memberships import MembershipService
from groupauth.authz.roles import Role, parse_role

__all__ = [
    "AuthorizationContext",
    "LastAdminGuard",
    "MembershipService",
    "Role",
    "parse_role",
]
