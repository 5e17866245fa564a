"""User account and session models for authentication."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel, frozen=True):
    """User account as returned by the user repository."""

    id: int
    email: str
    name: str
    username: str
    key: str = Field(min_length=1)  # public, non-guessable identifier
    password_hash: str = Field(min_length=1)
    email_verified: bool = False
    deactivated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.deactivated_at is None


class NewUser(BaseModel, frozen=True):
    """Fields needed to create a user; the repository assigns the id."""

    email: str
    name: str
    username: str
    key: str
    password_hash: str
    email_verified: bool = False


@dataclass(frozen=True)
class Session:
    """Server-side session for an authenticated user."""

    token: str  # 32 random bytes, base64url; stored in cookie
    user_id: int
    created_at: float  # time.time()
    expires_at: float  # created_at + store duration
    user_agent: str = ""
    ip_address: str = ""

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
