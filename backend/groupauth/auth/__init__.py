"""Authentication: password hashing, identifiers, sessions, and the auth service."""

from groupauth.auth.identifiers import (
    generate_public_key,
    generate_username,
    make_unique,
    make_unique_slug,
    new_token,
    slugify,
)
from groupauth.auth.models import NewUser, Session, User
from groupauth.auth.password import Argon2Hasher, PasswordHasher, SimpleHasher, hash_password, verify_password
from groupauth.auth.service import AuthError, AuthService
from groupauth.auth.session_store import SessionStore

__all__ = [
    "Argon2Hasher",
    "AuthError",
    "AuthService",
    "NewUser",
    "PasswordHasher",
    "Session",
    "SessionStore",
    "SimpleHasher",
    "User",
    "generate_public_key",
    "generate_username",
    "hash_password",
    "make_unique",
    "make_unique_slug",
    "new_token",
    "slugify",
    "verify_password",
]
