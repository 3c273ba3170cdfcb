"""
FastAPI server for natural-language database questions.

This module handles application setup, lifespan management, and middleware
configuration. Route handlers are organized in the routers/ package.

Startup builds one instance of each collaborator and stores it on
``app.state``:
- ConfigurationStore: settings layered over the environment
- DatabaseRepository: schema snapshot, structural probe, execution
- SqlGeneratorFactory + SqlValidationPipeline -> QueryOrchestrator
- SessionCache: per-session ConversationService instances
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import query_router, settings_router
from api.session_manager import SessionCache
from config.settings import Settings, get_settings
from config.store import ConfigurationStore, SettingKey
from entities.orchestrator import QueryOrchestrator
from entities.query_validator import SqlValidationPipeline
from entities.shared.connections import DatabaseConnectionManager
from entities.shared.schema_repository import (
    DatabaseRepository,
    default_cache_key,
    default_client_factory,
)
from entities.sql_generator import SqlGeneratorFactory

load_dotenv()

logger = logging.getLogger(__name__)

_NOISY_LOGGERS = ("azure", "httpx", "httpcore", "openai")


def configure_logging(level: str) -> None:
    """Configure root logging; use force=True to prevent duplicate handlers."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    # Reduce noise from Azure SDK and HTTP client libraries
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_state(application: FastAPI, settings: Settings) -> None:
    """Wire every collaborator onto ``application.state``."""
    store = ConfigurationStore(settings)
    configure_logging(store.get_setting(SettingKey.LOG_LEVEL, settings.log_level))

    repository = DatabaseRepository(
        client_factory=default_client_factory(settings, store),
        cache_path=settings.schema_cache_file,
        cache_key=default_cache_key(settings, store),
    )
    orchestrator = QueryOrchestrator(
        generator_factory=SqlGeneratorFactory(store, timeout=settings.llm_timeout_seconds),
        validator=SqlValidationPipeline(max_rows=store.max_rows),
        schema_provider=repository,
        executor=repository,
        config=store,
    )

    application.state.store = store
    application.state.repository = repository
    application.state.orchestrator = orchestrator
    application.state.connections = DatabaseConnectionManager(store)
    application.state.sessions = SessionCache(
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_session_cache_size,
    )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Initializes application state on startup and cleans up on shutdown.
    Conversation sessions are created per request by the query router.
    """
    settings = get_settings()
    build_state(application, settings)
    logger.info(
        "Database chat API starting (provider=%s, max_rows=%d)",
        application.state.store.get_setting(SettingKey.PROVIDER),
        application.state.store.max_rows(),
    )

    yield

    logger.info("Application shutdown complete")


app = FastAPI(title="Database Chat", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query_router)
app.include_router(settings_router)


@app.get("/health")
async def health_check() -> dict[str, object]:
    """Health check endpoint."""
    orchestrator_ready = getattr(app.state, "orchestrator", None) is not None
    return {"status": "healthy", "orchestrator_ready": orchestrator_ready}


if __name__ == "__main__":
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)  # noqa: S104
