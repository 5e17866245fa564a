"""Abstract interface for user persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from groupauth.auth.models import NewUser, User


class UserRepository(ABC):
    """Abstract interface for user persistence.

    Lookups raise NotFoundError when no row matches; any other failure is a
    PersistenceError.
    """

    @abstractmethod
    async def create_user(self, user: NewUser) -> User: ...

    @abstractmethod
    async def find_user_by_id(self, user_id: int) -> User: ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> User: ...

    @abstractmethod
    async def find_user_by_key(self, key: str) -> User: ...

    @abstractmethod
    async def email_exists(self, email: str) -> bool: ...

    @abstractmethod
    async def username_exists(self, username: str) -> bool: ...

    @abstractmethod
    async def key_exists(self, key: str) -> bool: ...
