"""
Query, conversation, schema and database routes.

POST /api/query runs one question through the orchestrator:
1. Records the question in the session's conversation
2. Hands the orchestrator a snapshot of that conversation
3. Records a one-line summary of the outcome as the system turn
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import (
    get_connections,
    get_orchestrator,
    get_repository,
    get_sessions,
)
from api.session_manager import SessionCache
from entities.orchestrator import QueryOrchestrator
from entities.shared.connections import DatabaseConnectionManager
from entities.shared.errors import SchemaError
from entities.shared.protocols import LoggingReporter
from entities.shared.schema_repository import DatabaseRepository
from models import DatabaseList, DatabaseSchema, QueryExecutionResult, QueryRequest, QueryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["query"])


def summarize_result(result: QueryExecutionResult) -> str:
    """One-line system turn describing ``result`` for the conversation history."""
    if result.success:
        if result.row_count:
            return f"Query executed successfully. Found {result.row_count} rows."
        return "Query executed successfully but returned no results."
    if result.requires_clarification:
        return result.clarification_question
    return result.error_message


@router.post("/query", response_model=QueryResponse)
async def run_query(
    request: QueryRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
    sessions: SessionCache = Depends(get_sessions),
) -> QueryResponse:
    """Answer a natural-language question within a conversation session."""
    session_id = request.session_id or uuid.uuid4().hex
    conversation = sessions.get_or_create(session_id)

    conversation.add_user_message(request.question)
    result = await orchestrator.process_query(
        request.question, conversation.snapshot(), LoggingReporter()
    )
    conversation.add_system_response(summarize_result(result))

    logger.info(
        "Query finished: session_id=%s success=%s kind=%s",
        session_id,
        result.success,
        result.failure_kind,
    )
    return QueryResponse(session_id=session_id, result=result)


@router.post("/conversation/{session_id}/clear")
async def clear_conversation(
    session_id: str,
    sessions: SessionCache = Depends(get_sessions),
) -> dict[str, object]:
    """Start the session's conversation over."""
    conversation = sessions.get(session_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Session not found")
    conversation.clear()
    return {"session_id": session_id, "cleared": True}


@router.delete("/conversation/{session_id}")
async def end_conversation(
    session_id: str,
    sessions: SessionCache = Depends(get_sessions),
) -> dict[str, object]:
    """Forget the session and its conversation."""
    if not sessions.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"session_id": session_id, "ended": True}


@router.get("/schema", response_model=DatabaseSchema)
async def get_schema(repository: DatabaseRepository = Depends(get_repository)) -> DatabaseSchema:
    """Current schema snapshot (live, cached, or empty)."""
    return await repository.get_schema()


@router.post("/schema/refresh", response_model=DatabaseSchema)
async def refresh_schema(
    repository: DatabaseRepository = Depends(get_repository),
) -> DatabaseSchema:
    """Re-read the schema from the database."""
    try:
        return await repository.refresh_schema()
    except SchemaError as exc:
        logger.warning("Schema refresh failed: %s", exc.message)
        raise HTTPException(status_code=503, detail=exc.message) from exc


@router.get("/databases", response_model=DatabaseList)
async def list_databases(
    connections: DatabaseConnectionManager = Depends(get_connections),
) -> DatabaseList:
    """Named connections and the one in use."""
    return DatabaseList(
        databases=connections.available_databases(),
        current=connections.current_database(),
    )


@router.post("/databases/{name}", response_model=DatabaseList)
async def switch_database(
    name: str,
    connections: DatabaseConnectionManager = Depends(get_connections),
) -> DatabaseList:
    """Make ``name`` the default connection."""
    if not await connections.switch_to_database(name):
        raise HTTPException(status_code=404, detail=f"Unknown database: {name}")
    return DatabaseList(
        databases=connections.available_databases(),
        current=connections.current_database(),
    )
