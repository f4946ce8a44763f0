"""In-process presence registry.

Maps each connected user to the one Socket.IO session that currently
represents them. A reconnect replaces the previous session, and a
disconnect only removes the entry if it still belongs to the
disconnecting session, so a late disconnect from an old socket cannot
knock a fresh reconnect offline.

State lives in this process only; running several server processes
needs an external presence broker.
"""
import logging
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """user_id -> sid, one live session per user."""

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, sid: str) -> Optional[str]:
        """Make sid the live session for user_id; returns the replaced sid, if any."""
        with self._lock:
            previous = self._sessions.get(user_id)
            self._sessions[user_id] = sid
        if previous and previous != sid:
            logger.info(f"PRESENCE: user={user_id} reconnected, sid {previous} -> {sid}")
        else:
            logger.debug(f"PRESENCE: user={user_id} online, sid={sid}")
        return previous

    def resolve(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._sessions.get(user_id)

    def unregister(self, user_id: str, sid: str) -> bool:
        """Remove user_id only if sid is still its registered session."""
        with self._lock:
            if self._sessions.get(user_id) != sid:
                logger.debug(f"PRESENCE: stale disconnect ignored, user={user_id}, sid={sid}")
                return False
            del self._sessions[user_id]
        logger.debug(f"PRESENCE: user={user_id} offline")
        return True

    def is_online(self, user_id: str) -> bool:
        return self.resolve(user_id) is not None

    def online_user_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self):
        with self._lock:
            return len(self._sessions)
