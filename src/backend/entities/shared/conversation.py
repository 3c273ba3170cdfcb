"""
Conversation state for one chat session.

The service owns a single ``ConversationContext`` and is the only writer.
The orchestrator receives ``snapshot()`` copies, so generators never see a
context that changes under them while a request is in flight.
"""

import logging
from datetime import datetime, timedelta
from typing import TypeVar

from entities.shared.language import detect_language
from models import ConversationContext, ConversationMessage, SessionValue

logger = logging.getLogger(__name__)

T = TypeVar("T", str, int, float, bool)


class ConversationService:
    """Tracks messages, session variables and the preferred language."""

    def __init__(self) -> None:
        self._context = ConversationContext()

    def add_user_message(self, message: str) -> None:
        """Append a user turn and update the preferred language from it."""
        self._context.preferred_language = detect_language(message)
        self._context.messages.append(ConversationMessage(role="user", content=message))
        logger.debug(
            "Added user message to conversation context. Language: %s",
            self._context.preferred_language,
        )

    def add_system_response(self, response: str) -> None:
        """Append a system turn."""
        self._context.messages.append(ConversationMessage(role="system", content=response))
        logger.debug("Added system response to conversation context")

    def snapshot(self) -> ConversationContext:
        """Return a deep copy of the current context for one orchestrator call."""
        return self._context.model_copy(deep=True)

    def clear(self) -> None:
        """Start a fresh context (new session start time, no messages)."""
        logger.info("Clearing conversation context")
        self._context = ConversationContext()

    def set_session_variable(self, key: str, value: SessionValue) -> None:
        """Store a session variable, replacing any previous value."""
        self._context.session_variables[key] = value
        logger.debug("Set session variable: %s = %s", key, value)

    def get_session_variable(self, key: str, expected_type: type[T]) -> T | None:
        """Return the variable if present and of ``expected_type``, else ``None``."""
        value = self._context.session_variables.get(key)
        if isinstance(value, expected_type):
            return value
        return None

    def remove_session_variable(self, key: str) -> None:
        """Remove a session variable if present."""
        self._context.session_variables.pop(key, None)
        logger.debug("Removed session variable: %s", key)

    def set_preferred_language(self, language: str) -> None:
        """Override the detected language."""
        self._context.preferred_language = language
        logger.debug("Set preferred language: %s", language)

    def summary(self, max_messages: int = 10) -> str:
        """Return the last ``max_messages`` turns as ``role: content`` lines."""
        return "\n".join(
            f"{m.role}: {m.content}" for m in self._context.recent_messages(max_messages)
        )

    @property
    def message_count(self) -> int:
        """Number of turns recorded."""
        return len(self._context.messages)

    @property
    def session_duration(self) -> timedelta:
        """Time since the session started."""
        return datetime.now() - self._context.session_start
