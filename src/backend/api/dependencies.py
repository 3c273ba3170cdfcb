"""
FastAPI dependencies for shared resources built at startup.
"""

import logging
from typing import Any

from fastapi import HTTPException, Request

from api.session_manager import SessionCache
from config.store import ConfigurationStore
from entities.orchestrator import QueryOrchestrator
from entities.shared.connections import DatabaseConnectionManager
from entities.shared.schema_repository import DatabaseRepository

logger = logging.getLogger(__name__)


def _from_state(request: Request, name: str) -> Any:  # noqa: ANN401
    """
    Get a component from app state.

    Raises HTTPException 503 if not initialized.
    """
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.error("Requested %s before application startup completed", name)
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return component


def get_orchestrator(request: Request) -> QueryOrchestrator:
    """The query orchestrator."""
    return _from_state(request, "orchestrator")


def get_sessions(request: Request) -> SessionCache:
    """The conversation session cache."""
    return _from_state(request, "sessions")


def get_repository(request: Request) -> DatabaseRepository:
    """The schema repository."""
    return _from_state(request, "repository")


def get_store(request: Request) -> ConfigurationStore:
    """The settings store."""
    return _from_state(request, "store")


def get_connections(request: Request) -> DatabaseConnectionManager:
    """The database connection manager."""
    return _from_state(request, "connections")
