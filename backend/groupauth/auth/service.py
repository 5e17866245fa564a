"""Auth service coordinating registration, login, and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING

from groupauth.auth.audit import (
    AuthFailureReason,
    log_auth_failure,
    log_login_success,
    log_logout,
    log_persistence_error,
    log_registration,
)
from groupauth.auth.identifiers import generate_username, make_unique_public_key, make_unique_slug
from groupauth.auth.models import NewUser
from groupauth.errors import ConflictError, NotFoundError, PersistenceError, ValidationError

if TYPE_CHECKING:
    from groupauth.auth.models import Session, User
    from groupauth.auth.password import PasswordHasher
    from groupauth.auth.session_store import SessionStore
    from groupauth.dal.user_repository import UserRepository

PASSWORD_MIN_LENGTH = 8


class AuthError(Exception):
    """Authentication failure. The message never says which check failed."""


class AuthService:
    """Coordinate user registration, login, and session validation."""

    def __init__(
        self,
        user_repo: UserRepository,
        session_store: SessionStore,
        *,
        password_hasher: PasswordHasher,
    ) -> None:
        self._user_repo = user_repo
        self._session_store = session_store
        self._hasher = password_hasher
        self._decoy_hash = password_hasher.decoy_hash

    async def register(self, email: str, name: str, password: str, password_confirmation: str) -> User:
        """Register a new account with a derived unique username and public key."""
        email = email.strip().lower()
        name = name.strip()
        _validate_registration(email, name, password, password_confirmation)

        try:
            if await self._user_repo.email_exists(email):
                raise ConflictError("Email already taken")

            password_hash = await self._hasher.hash(password)
            username = await make_unique_slug(generate_username(name), self._user_repo.username_exists)
            key = await make_unique_public_key(self._user_repo.key_exists)

            user = await self._user_repo.create_user(
                NewUser(email=email, name=name, username=username, key=key, password_hash=password_hash),
            )
        except PersistenceError as e:
            log_persistence_error(e.operation, e)
            raise
        log_registration(email, user.id)
        return user

    async def login(self, email: str, password: str, *, user_agent: str = "", ip_address: str = "") -> Session:
        """Validate credentials and create a session.

        A password check always runs, against the hasher's precomputed decoy
        hash when the account does not exist, so response time does not
        reveal which emails are registered. Every failure raises the same
        AuthError.
        """
        email = email.strip().lower()
        user: User | None
        try:
            user = await self._user_repo.find_user_by_email(email)
        except NotFoundError:
            user = None
        except PersistenceError as e:
            log_persistence_error("find_user_by_email", e)
            raise

        hash_to_check = user.password_hash if user is not None else self._decoy_hash
        password_valid = await self._hasher.verify(password, hash_to_check)

        if user is None:
            log_auth_failure(email, AuthFailureReason.USER_NOT_FOUND, ip_address=ip_address)
            raise AuthError("Invalid credentials")
        if not password_valid:
            log_auth_failure(email, AuthFailureReason.INVALID_PASSWORD, ip_address=ip_address)
            raise AuthError("Invalid credentials")
        if not user.email_verified:
            log_auth_failure(email, AuthFailureReason.EMAIL_NOT_VERIFIED, ip_address=ip_address)
            raise AuthError("Invalid credentials")
        if not user.is_active:
            log_auth_failure(email, AuthFailureReason.ACCOUNT_DEACTIVATED, ip_address=ip_address)
            raise AuthError("Invalid credentials")

        session = self._session_store.create(user.id, user_agent=user_agent, ip_address=ip_address)
        log_login_success(email, user.id, ip_address=ip_address)
        return session

    def validate_session(self, token: str | None) -> Session | None:
        """Return the session if valid and not expired, otherwise None."""
        return self._session_store.get(token)

    async def current_user(self, token: str | None) -> User | None:
        """Resolve a session token to its user.

        Sessions whose user was deleted or deactivated are destroyed.
        """
        session = self._session_store.get(token)
        if session is None:
            return None
        try:
            user = await self._user_repo.find_user_by_id(session.user_id)
        except NotFoundError:
            self._session_store.delete(session.token)
            return None
        except PersistenceError as e:
            log_persistence_error(e.operation, e)
            raise
        if not user.is_active:
            self._session_store.delete(session.token)
            return None
        return user

    def logout(self, token: str) -> None:
        """Destroy a session."""
        session = self._session_store.get(token)
        if session is None:
            return
        self._session_store.delete(token)
        log_logout(session.user_id)

    def logout_everywhere(self, user_id: int) -> int:
        """Destroy every session of a user. Return count of removed sessions."""
        removed = self._session_store.delete_by_user_id(user_id)
        log_logout(user_id, sessions=removed)
        return removed


def _validate_registration(email: str, name: str, password: str, password_confirmation: str) -> None:
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", field="email")
    if not name:
        raise ValidationError("Name is required", field="name")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters", field="password")
    if password != password_confirmation:
        raise ValidationError("Passwords do not match", field="password_confirmation")
