"""In-memory session store with periodic expiry cleanup."""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time

import structlog

from groupauth.auth.identifiers import generate_session_token
from groupauth.auth.models import Session

CLEANUP_INTERVAL_SECONDS = 600  # 10 minutes
DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 3600  # 7 days

logger = structlog.get_logger()


class SessionStore:
    """In-memory session store with expiry cleanup.

    Sessions are ephemeral: server restart means re-login. One instance is
    built at startup and shared by every request handler. All methods are
    safe to call from any thread; each mutation of the map is atomic under
    the internal lock.

    Call start_cleanup() on app startup and stop_cleanup() on shutdown.
    """

    def __init__(
        self,
        duration_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        if cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds must be positive")
        self._duration = duration_seconds
        self._cleanup_interval = cleanup_interval_seconds
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._cleanup_task: asyncio.Task[None] | None = None

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def create(self, user_id: int, user_agent: str = "", ip_address: str = "") -> Session:
        """Create a session for an authenticated user."""
        token = generate_session_token()
        now = time.time()
        session = Session(
            token=token,
            user_id=user_id,
            created_at=now,
            expires_at=now + self._duration,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        with self._lock:
            self._sessions[token] = session
        return session

    def get(self, token: str | None) -> Session | None:
        """Return a valid (non-expired) session, or None.

        An expired entry is removed as a side effect of the lookup.
        """
        if not token:
            return None
        now = time.time()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(now):
                del self._sessions[token]
                return None
            return session

    def delete(self, token: str) -> None:
        """Remove a session (logout)."""
        with self._lock:
            self._sessions.pop(token, None)

    def get_by_user_id(self, user_id: int) -> list[Session]:
        """Return all active sessions belonging to a user."""
        now = time.time()
        with self._lock:
            return [s for s in self._sessions.values() if s.user_id == user_id and not s.is_expired(now)]

    def delete_by_user_id(self, user_id: int) -> int:
        """Remove every session belonging to a user. Return count of removed sessions."""
        with self._lock:
            tokens = [token for token, s in self._sessions.items() if s.user_id == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def cleanup_expired(self) -> int:
        """Remove all expired sessions. Return count of removed sessions."""
        now = time.time()
        with self._lock:
            expired = [token for token, s in self._sessions.items() if s.is_expired(now)]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("cleaned up expired sessions", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def start_cleanup(self) -> None:
        """Start the periodic cleanup background task."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        """Stop the periodic cleanup background task."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        """Periodically remove expired sessions."""
        while True:
            await asyncio.sleep(self._cleanup_interval)
            try:
                self.cleanup_expired()
            except Exception:
                logger.exception("session cleanup failed")
