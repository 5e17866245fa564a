"""Structured audit events for authentication.

Clients only ever see a generic "Invalid credentials" response; the specific
failure reason goes to this logger so it can be monitored without enabling
account enumeration. Passwords and tokens are never logged.
"""

from __future__ import annotations

from enum import StrEnum

import structlog

logger = structlog.get_logger("groupauth.audit")


class AuthFailureReason(StrEnum):
    USER_NOT_FOUND = "user_not_found"
    INVALID_PASSWORD = "invalid_password"  # noqa: S105
    EMAIL_NOT_VERIFIED = "email_not_verified"
    ACCOUNT_DEACTIVATED = "account_deactivated"


def log_auth_failure(email: str, reason: AuthFailureReason, *, ip_address: str = "") -> None:
    logger.warning("auth failure", email=email, reason=reason, ip_address=ip_address or "unknown")


def log_login_success(email: str, user_id: int, *, ip_address: str = "") -> None:
    logger.info("auth login", email=email, user_id=user_id, ip_address=ip_address or "unknown")


def log_registration(email: str, user_id: int) -> None:
    logger.info("auth register", email=email, user_id=user_id)


def log_logout(user_id: int, *, sessions: int = 1) -> None:
    logger.info("auth logout", user_id=user_id, sessions=sessions)


def log_persistence_error(operation: str, exc: BaseException) -> None:
    """Record a persistence failure by operation name; callers surface a generic error."""
    cause = exc.__cause__
    logger.error(
        "persistence error",
        operation=operation,
        error=str(exc),
        error_type=type(exc).__name__,
        cause=str(cause) if cause is not None else None,
    )
