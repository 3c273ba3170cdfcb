"""
Request and response bodies for the HTTP API.
"""

from typing import Any

from pydantic import BaseModel, Field

from .execution import QueryExecutionResult


class QueryRequest(BaseModel):
    """A natural-language question, optionally continuing a session."""

    question: str = Field(min_length=1, description="Question in English or Hinglish")
    session_id: str | None = Field(
        default=None, description="Conversation session; a new one is started when omitted"
    )


class QueryResponse(BaseModel):
    """Orchestrator result plus the session it was recorded in."""

    session_id: str
    result: QueryExecutionResult


class DatabaseList(BaseModel):
    """Switchable databases and the one currently in use."""

    databases: list[str] = Field(default_factory=list)
    current: str


class SettingsView(BaseModel):
    """Current settings by key; API keys are masked."""

    values: dict[str, Any] = Field(default_factory=dict)


class SettingsUpdate(BaseModel):
    """Settings to change. A masked API key is left as stored."""

    values: dict[str, str | int] = Field(min_length=1)


class ConnectionTestRequest(BaseModel):
    """Connection string to try; the configured default when omitted."""

    connection_string: str | None = Field(default=None)


class ConnectionTestResult(BaseModel):
    """Outcome of opening a connection and running ``SELECT 1``."""

    success: bool
    message: str
