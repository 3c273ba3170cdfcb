"""
Session management for per-conversation state.

Each session (identified by session_id) gets its own ConversationService
holding the message history and session variables for follow-up questions.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from threading import Lock

from entities.shared.conversation import ConversationService

logger = logging.getLogger(__name__)


class SessionCache:
    """
    In-memory TTL + LRU cache of conversation sessions.

    A session expires after ``ttl_seconds`` without use. When more than
    ``max_sessions`` are cached the least recently used one is evicted.
    In production, consider Redis or similar for multi-instance deployments.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_sessions: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, tuple[ConversationService, float]] = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | None) -> ConversationService | None:
        """
        Return the live session for ``session_id``.

        Returns:
            The cached service or None if not found/expired
        """
        if not session_id:
            return None

        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None

            service, last_used = entry
            now = self._clock()
            if now - last_used > self._ttl_seconds:
                del self._sessions[session_id]
                logger.info("Session expired for session_id=%s", session_id)
                return None

            self._sessions[session_id] = (service, now)
            self._sessions.move_to_end(session_id)
            return service

    def get_or_create(self, session_id: str) -> ConversationService:
        """Return the session for ``session_id``, starting a new one if needed."""
        service = self.get(session_id)
        if service is not None:
            return service

        service = ConversationService()
        with self._lock:
            self._sessions[session_id] = (service, self._clock())
            self._sessions.move_to_end(session_id)
            logger.info(
                "Started session_id=%s (cache size: %d)", session_id, len(self._sessions)
            )
            self._cleanup_expired_sessions()

            while len(self._sessions) > self._max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Evicted LRU session: session_id=%s", evicted_id)
        return service

    def _cleanup_expired_sessions(self) -> None:
        """Remove expired sessions from cache (must hold lock)."""
        now = self._clock()
        expired = [
            sid
            for sid, (_, last_used) in self._sessions.items()
            if now - last_used > self._ttl_seconds
        ]
        for sid in expired:
            del self._sessions[sid]

        if expired:
            logger.info("Cleaned up %d expired sessions", len(expired))

    def remove(self, session_id: str) -> bool:
        """Drop a session. Returns whether it existed."""
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
        logger.info("Removed session_id=%s", session_id)
        return True
