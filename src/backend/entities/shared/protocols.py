"""Protocol interfaces for I/O boundaries.

These protocols enable dependency injection for testability.
Production implementations wrap SQL Server and LLM provider clients;
test fakes return canned data with zero network or filesystem access.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol, runtime_checkable

from models import ConversationContext, DatabaseSchema, GenerationResult, TabularResult

logger = logging.getLogger(__name__)


@runtime_checkable
class SchemaProvider(Protocol):
    """Supplies the schema snapshot and probes SQL structure without running it."""

    async def get_schema(self) -> DatabaseSchema:
        """Return the current schema snapshot.

        Implementations fall back to the last-known-good snapshot when the
        database is unreachable, and to an empty schema when none exists.
        """
        ...

    async def check_structure(self, sql: str) -> bool:
        """Return whether ``sql`` is structurally valid against the live database.

        Args:
            sql: Final SQL text (after TOP enforcement).

        Returns:
            ``True`` when the database can describe the query's result set.
        """
        ...


@runtime_checkable
class QueryExecutor(Protocol):
    """Executes parameterised, read-only SQL against the database."""

    async def execute(self, sql: str, parameters: dict[str, Any]) -> TabularResult:
        """Execute a SQL query.

        Args:
            sql: SQL statement with ``@name`` parameter markers.
            parameters: Parameter name (without ``@``) → value.

        Returns:
            Rows and column names.

        Raises:
            Exception: On connection or runtime failure.
        """
        ...


@runtime_checkable
class SqlGenerator(Protocol):
    """Turns a natural-language question into candidate SQL."""

    async def generate_sql(
        self,
        question: str,
        schema: DatabaseSchema,
        context: ConversationContext,
    ) -> GenerationResult:
        """Generate SQL or a clarification request.

        Args:
            question: Natural-language question (English or Hinglish).
            schema: Schema snapshot to ground the generated SQL.
            context: Read-only conversation context.

        Returns:
            The generation result.

        Raises:
            ProviderError: When the upstream model fails.
        """
        ...


@runtime_checkable
class SettingsReader(Protocol):
    """Read side of the settings store used by the core."""

    def get_setting(self, key: Any, default: Any = None) -> Any:  # noqa: ANN401
        """Return a setting value."""
        ...

    def max_rows(self) -> int:
        """Return the resolved row cap."""
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Reports step-level progress for streaming UI updates."""

    def step_start(self, step: str) -> None:
        """Signal that a named step has started.

        Args:
            step: Human-readable step label.
        """
        ...

    def step_end(self, step: str) -> None:
        """Signal that a named step has completed.

        Args:
            step: Human-readable step label (must match a prior start).
        """
        ...


# ---------------------------------------------------------------------------
# Concrete implementations
# ---------------------------------------------------------------------------


class NoOpReporter:
    """ProgressReporter that silently discards all events.

    Useful in tests and non-streaming contexts where no UI is attached.
    """

    def step_start(self, step: str) -> None:
        """No-op."""

    def step_end(self, step: str) -> None:
        """No-op."""


class LoggingReporter:
    """ProgressReporter that logs step durations at DEBUG level."""

    def __init__(self) -> None:
        self._start_times: dict[str, float] = {}

    def step_start(self, step: str) -> None:
        """Record the start time of ``step``."""
        self._start_times[step] = time.perf_counter()
        logger.debug("Step started: %s", step)

    def step_end(self, step: str) -> None:
        """Log the elapsed time of ``step``."""
        start_time = self._start_times.pop(step, None)
        duration_ms = int((time.perf_counter() - start_time) * 1000) if start_time else None
        logger.debug("Step completed: %s (%s ms)", step, duration_ms)
