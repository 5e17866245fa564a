"""Password hashing: protocol, Argon2id (production), and simple SHA-256 (tests).

Argon2id is CPU- and memory-bound (64 MiB, 3 passes per call). The async
hasher runs it off the event loop using anyio.to_thread.run_sync() so it does
not block under concurrent requests.

Encoded hashes use the PHC string format produced by argon2-cffi:
``$argon2id$v=19$m=65536,t=3,p=4$<salt>$<key>``.

SimpleHasher uses SHA-256 with a "simple$" prefix for instant hashing.
It is intended for tests only.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Protocol, runtime_checkable

from anyio import to_thread
from argon2 import PasswordHasher as _Argon2PasswordHasher
from argon2 import Type, extract_parameters
from argon2.exceptions import InvalidHashError, VerificationError

from groupauth.errors import EmptyInputError

ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # KiB (64 MiB)
ARGON2_PARALLELISM = 4
ARGON2_HASH_LEN = 32
ARGON2_SALT_LEN = 16

_argon2 = _Argon2PasswordHasher(
    time_cost=ARGON2_TIME_COST,
    memory_cost=ARGON2_MEMORY_COST,
    parallelism=ARGON2_PARALLELISM,
    hash_len=ARGON2_HASH_LEN,
    salt_len=ARGON2_SALT_LEN,
    type=Type.ID,
)


def hash_password(password: str) -> str:
    """Hash a password with Argon2id and a fresh random salt.

    Raises EmptyInputError for an empty password.
    """
    if not password:
        raise EmptyInputError("password cannot be empty")
    return _argon2.hash(password)


def verify_password(password: str, encoded_hash: str) -> bool:
    """Check a password against an encoded Argon2id hash.

    Never raises: empty passwords, malformed encodings, other Argon2 variants,
    and unparsable parameters all yield False. The key is re-derived with the
    parameters and salt embedded in the hash and compared in constant time by
    libargon2.
    """
    if not password or not encoded_hash:
        return False
    try:
        if extract_parameters(encoded_hash).type is not Type.ID:
            return False
        return _argon2.verify(encoded_hash, password)
    except (InvalidHashError, VerificationError, ValueError):
        return False


@runtime_checkable
class PasswordHasher(Protocol):
    """Hash and verify passwords."""

    @property
    def decoy_hash(self) -> str:
        """A valid hash of an unknown password, verified when no account matches."""
        ...

    async def hash(self, plain: str) -> str: ...

    async def verify(self, plain: str, hashed: str) -> bool: ...


class Argon2Hasher:
    """Production hasher using Argon2id (async, off-thread).

    The decoy hash is derived once at construction with the production
    parameters, so verifying against it costs the same as a real login.
    """

    def __init__(self) -> None:
        self._decoy_hash = hash_password(secrets.token_urlsafe(24))

    @property
    def decoy_hash(self) -> str:
        return self._decoy_hash

    async def hash(self, plain: str) -> str:
        if not plain:
            raise EmptyInputError("password cannot be empty")
        return await to_thread.run_sync(hash_password, plain)

    async def verify(self, plain: str, hashed: str) -> bool:
        return await to_thread.run_sync(verify_password, plain, hashed)


_SIMPLE_PREFIX = "simple$"


class SimpleHasher:
    """Fast SHA-256 hasher for tests. Not suitable for production use."""

    def __init__(self) -> None:
        self._decoy_hash = _SIMPLE_PREFIX + hashlib.sha256(secrets.token_bytes(24)).hexdigest()

    @property
    def decoy_hash(self) -> str:
        return self._decoy_hash

    async def hash(self, plain: str) -> str:
        if not plain:
            raise EmptyInputError("password cannot be empty")
        return _SIMPLE_PREFIX + hashlib.sha256(plain.encode("utf-8")).hexdigest()

    async def verify(self, plain: str, hashed: str) -> bool:
        if not plain or not hashed.startswith(_SIMPLE_PREFIX):
            return False
        expected = _SIMPLE_PREFIX + hashlib.sha256(plain.encode("utf-8")).hexdigest()
        return hmac.compare_digest(hashed.encode("utf-8"), expected.encode("utf-8"))


def get_hasher(name: str = "argon2") -> PasswordHasher:
    """Return a PasswordHasher by name ("argon2" or "simple")."""
    if name == "argon2":
        return Argon2Hasher()
    if name == "simple":
        return SimpleHasher()
    raise ValueError(f"Unknown password hasher: {name!r}")
