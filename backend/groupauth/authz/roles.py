"""Group roles."""

from enum import StrEnum

from groupauth.errors import InvalidRoleError


class Role(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


def parse_role(value: str | Role) -> Role:
    """Parse a role at an input boundary. Unknown values raise, never default."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError as e:
        raise InvalidRoleError(f"Invalid role {value!r}: must be 'admin' or 'member'", field="role") from e
