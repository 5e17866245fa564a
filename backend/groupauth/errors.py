"""Error taxonomy shared by the auth, authz, and persistence layers."""

from __future__ import annotations

from typing import Literal

LAST_ADMIN_ERROR_CODE = "last_admin"


class GroupAuthError(Exception):
    """Base class for all expected failures raised by this package."""


class EmptyInputError(GroupAuthError, ValueError):
    """A required secret (e.g. a password) was empty."""


class GenerationExhaustedError(GroupAuthError):
    """No unused identifier was found within the attempt budget."""

    def __init__(self, what: str, attempts: int) -> None:
        super().__init__(f"Failed to generate unique {what} after {attempts} attempts")
        self.what = what
        self.attempts = attempts


class NotFoundError(GroupAuthError):
    """A record requested from the persistence layer does not exist."""


class ValidationError(GroupAuthError, ValueError):
    """User-supplied input failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidRoleError(ValidationError):
    """A role string is not one of the recognized roles."""


class ConflictError(GroupAuthError):
    """The requested change conflicts with current state."""


class PermissionDeniedError(GroupAuthError):
    """The caller lacks the capability required for an operation."""


class LastAdminViolation(GroupAuthError):
    """The change would leave a group without any administrator.

    ``source`` records which layer caught it and is meant for logs only;
    callers must handle both sources identically.
    """

    def __init__(self, group_id: int, source: Literal["precheck", "authoritative"]) -> None:
        super().__init__("Cannot remove or demote the last administrator of a group")
        self.group_id = group_id
        self.source = source


class PersistenceError(GroupAuthError):
    """Opaque failure from the persistence layer.

    The message stays generic so callers can surface it as is. The driver's
    own error is kept as ``__cause__`` for logs.
    """

    def __init__(self, operation: str, message: str = "Database error", code: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.code = code


class LastAdminRejectedError(PersistenceError):
    """The store refused a role mutation because it would remove the last admin."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            operation,
            "Cannot remove or demote the last administrator of a group",
            code=LAST_ADMIN_ERROR_CODE,
        )


def is_last_admin_rejection(exc: BaseException | None) -> bool:
    """Return True if ``exc`` (or anything in its cause chain) is the store's last-admin rejection."""
    while exc is not None:
        if isinstance(exc, PersistenceError) and exc.code == LAST_ADMIN_ERROR_CODE:
            return True
        exc = exc.__cause__
    return False
