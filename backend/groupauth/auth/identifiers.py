"""Random tokens, public keys, and human-readable unique handles.

Tokens and keys come from the OS CSPRNG via ``secrets``; a failure of the
random source propagates and is treated as fatal.

Handles (usernames, group handles) are slugs matching ``HANDLE_PATTERN``.
Uniqueness is enforced by retrying against an ``exists`` predicate supplied by
the caller, which may be a plain or an async callable. Errors raised by the
predicate are never swallowed: they propagate to the caller, so a value whose
availability could not be confirmed is never returned.
"""

from __future__ import annotations

import inspect
import re
import secrets
import unicodedata
from typing import TYPE_CHECKING

from groupauth.errors import GenerationExhaustedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ExistsPredicate = Callable[[str], bool | Awaitable[bool]]

SESSION_TOKEN_BYTES = 32  # 256 bits, 43 chars encoded
PUBLIC_KEY_BYTES = 16  # 128 bits, 22 chars encoded

MAX_KEY_ATTEMPTS = 100
MAX_SLUG_ATTEMPTS = 1000

HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 100
USERNAME_FALLBACK_LENGTH = 8

HANDLE_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def new_token(n_bytes: int) -> str:
    """Return ``n_bytes`` of CSPRNG output, base64url-encoded without padding."""
    return secrets.token_urlsafe(n_bytes)


def generate_session_token() -> str:
    return new_token(SESSION_TOKEN_BYTES)


def generate_public_key() -> str:
    """Return a 22-character, 128-bit public key for a user."""
    return new_token(PUBLIC_KEY_BYTES)


def random_slug(length: int = USERNAME_FALLBACK_LENGTH) -> str:
    """Return a random lowercase hex string of the given length."""
    return secrets.token_hex((length + 1) // 2)[:length]


async def _exists(exists: ExistsPredicate, candidate: str) -> bool:
    result = exists(candidate)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def make_unique(
    generate: Callable[[], str],
    exists: ExistsPredicate,
    max_attempts: int = MAX_KEY_ATTEMPTS,
    *,
    what: str = "identifier",
) -> str:
    """Generate values until ``exists`` reports one as unused.

    Raises GenerationExhaustedError after ``max_attempts`` taken values. With
    128-bit keys that only happens when the predicate is broken.
    """
    for _ in range(max_attempts):
        candidate = generate()
        if not await _exists(exists, candidate):
            return candidate
    raise GenerationExhaustedError(what, max_attempts)


async def make_unique_public_key(exists: ExistsPredicate, max_attempts: int = MAX_KEY_ATTEMPTS) -> str:
    return await make_unique(generate_public_key, exists, max_attempts, what="public key")


def slugify(
    name: str,
    *,
    max_length: int = HANDLE_MAX_LENGTH,
    min_length: int = HANDLE_MIN_LENGTH,
) -> str:
    """Derive a URL-safe slug from free text.

    Decomposes Unicode, drops combining marks and anything else outside ASCII,
    lowercases, and collapses runs of other characters into one hyphen.
    Returns "" when the result is shorter than ``min_length``; callers must
    supply a fallback.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    ascii_only = stripped.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_ALPHANUMERIC.sub("-", ascii_only).strip("-")
    if len(slug) > max_length:
        slug = slug[:max_length].strip("-")
    if len(slug) < min_length:
        return ""
    return slug


def is_valid_handle(handle: str, *, max_length: int = HANDLE_MAX_LENGTH) -> bool:
    if len(handle) < HANDLE_MIN_LENGTH or len(handle) > max_length:
        return False
    return HANDLE_PATTERN.match(handle) is not None


def generate_username(name: str) -> str:
    """Derive a username from a display name, falling back to a random slug."""
    return slugify(name) or random_slug(USERNAME_FALLBACK_LENGTH)


async def make_unique_slug(
    base: str,
    exists: ExistsPredicate,
    *,
    max_length: int = HANDLE_MAX_LENGTH,
    max_attempts: int = MAX_SLUG_ATTEMPTS,
) -> str:
    """Return ``base`` or the first free ``base-N`` for N in 1..max_attempts.

    ``base`` is shortened as needed so every candidate fits ``max_length``.
    Raises GenerationExhaustedError when no candidate is free or the base
    cannot be shortened enough.
    """
    if not await _exists(exists, base):
        return base

    for i in range(1, max_attempts + 1):
        suffix = f"-{i}"
        room = max_length - len(suffix)
        trimmed = base[:room].rstrip("-")
        if len(trimmed) < HANDLE_MIN_LENGTH:
            break
        candidate = trimmed + suffix
        if not await _exists(exists, candidate):
            return candidate
    raise GenerationExhaustedError("handle", max_attempts)


async def generate_unique_handle(name: str, exists: ExistsPredicate) -> str:
    """Derive a unique group handle from a name; "" means the name is unusable."""
    base = slugify(name)
    if not base:
        return ""
    return await make_unique_slug(base, exists)
