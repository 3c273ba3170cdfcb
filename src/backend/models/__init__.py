"""
Shared models for entities.

These models are used across the validator, generators, orchestrator
and the API layer. All models are re-exported here.
"""

from .api import (
    ConnectionTestRequest,
    ConnectionTestResult,
    DatabaseList,
    QueryRequest,
    QueryResponse,
    SettingsUpdate,
    SettingsView,
)
from .conversation import ConversationContext, ConversationMessage, SessionValue
from .execution import FailureKind, QueryExecutionResult, TabularResult
from .generation import GenerationResult, Provider, ValidationCode, ValidationOutcome
from .schema import ColumnInfo, DatabaseSchema, RelationshipInfo, TableInfo

__all__ = [
    # Schema snapshot
    "ColumnInfo",
    "DatabaseSchema",
    "RelationshipInfo",
    "TableInfo",
    # Conversation
    "ConversationContext",
    "ConversationMessage",
    "SessionValue",
    # Generation and validation
    "GenerationResult",
    "Provider",
    "ValidationCode",
    "ValidationOutcome",
    # Execution (query results)
    "FailureKind",
    "QueryExecutionResult",
    "TabularResult",
    # HTTP API
    "DatabaseList",
    "QueryRequest",
    "QueryResponse",
    "ConnectionTestRequest",
    "ConnectionTestResult",
    "SettingsUpdate",
    "SettingsView",
]
