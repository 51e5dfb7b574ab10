"""In-memory session storage with per-user locking."""

import asyncio
import logging
from typing import Optional

from .models import UserSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Maps Telegram user id -> UserSession for the lifetime of the process.

    Sessions are created lazily on first contact. Each user also gets an
    asyncio.Lock so that one user's messages are handled one at a time,
    while other users proceed concurrently.
    """

    def __init__(self):
        """Initialize empty store."""
        self._sessions: dict[int, UserSession] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def get(self, user_id: int) -> UserSession:
        """
        Get existing session or create a new one.

        No await happens between the lookup and the insert, so concurrent
        first messages from the same user share one session.

        Args:
            user_id: Telegram user identifier

        Returns:
            The user's session
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = UserSession(user_id=user_id)
            self._sessions[user_id] = session
            logger.debug(f"Session created: {user_id}")
        return session

    def peek(self, user_id: int) -> Optional[UserSession]:
        """Get session without creating it."""
        return self._sessions.get(user_id)

    def lock(self, user_id: int) -> asyncio.Lock:
        """Get the lock that serializes handling for one user."""
        return self._locks.setdefault(user_id, asyncio.Lock())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._sessions


# Singleton
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get singleton SessionStore."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
