"""
Conversation context models.

The context is owned by the conversation service at the API boundary and
handed to the orchestrator as a snapshot. Generators read it, never write it.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SessionValue = str | int | float | bool
"""Allowed session-variable value types."""


class ConversationMessage(BaseModel):
    """One turn in the conversation."""

    role: Literal["user", "system"] = Field(description="Who produced the message")
    content: str = Field(default="")
    timestamp: datetime = Field(default_factory=datetime.now)


class ConversationContext(BaseModel):
    """
    Per-session conversation state passed into each orchestrator call.

    ``preferred_language`` is ``"en"`` or ``"hi-en"`` (Hindi/English code-mixed).
    """

    messages: list[ConversationMessage] = Field(default_factory=list)
    session_variables: dict[str, SessionValue] = Field(default_factory=dict)
    preferred_language: str = Field(default="en")
    session_start: datetime = Field(default_factory=datetime.now)

    def recent_messages(self, limit: int) -> list[ConversationMessage]:
        """Return the last ``limit`` messages in order."""
        if limit <= 0:
            return []
        return self.messages[-limit:]
