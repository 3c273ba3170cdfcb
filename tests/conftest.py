"""Shared test fixtures for the database chat backend."""

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure src/backend/ is on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "backend"))

from cryptography.fernet import Fernet

from config.settings import Settings
from entities.query_validator.validator import resolve_max_rows
from entities.shared.protocols import NoOpReporter
from models import (
    ColumnInfo,
    ConversationContext,
    DatabaseSchema,
    GenerationResult,
    RelationshipInfo,
    TableInfo,
    TabularResult,
)

# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------


class FakeSchemaProvider:
    """In-memory fake satisfying the ``SchemaProvider`` protocol.

    Returns a canned schema and structural verdict, and records every
    ``check_structure`` call.
    """

    def __init__(
        self,
        schema: DatabaseSchema | None = None,
        structure_ok: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.schema = schema or DatabaseSchema()
        self.structure_ok = structure_ok
        self.error = error
        self.schema_calls = 0
        self.structure_calls: list[str] = []

    async def get_schema(self) -> DatabaseSchema:
        """Return the canned schema or raise the configured error."""
        self.schema_calls += 1
        if self.error:
            raise self.error
        return self.schema

    async def check_structure(self, sql: str) -> bool:
        """Record the probe and return the canned verdict."""
        self.structure_calls.append(sql)
        return self.structure_ok


class FakeQueryExecutor:
    """In-memory fake satisfying the ``QueryExecutor`` protocol."""

    def __init__(
        self,
        result: TabularResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result or TabularResult()
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def execute(self, sql: str, parameters: dict[str, Any]) -> TabularResult:
        """Record the call and return the canned rows."""
        self.calls.append((sql, parameters))
        if self.error:
            raise self.error
        return self.result


class FakeGenerator:
    """Fake ``SqlGenerator`` that raises queued errors, then returns a result.

    Args:
        result: Returned once ``errors`` is exhausted.
        errors: Raised in order, one per call.
    """

    def __init__(
        self,
        result: GenerationResult | None = None,
        errors: list[BaseException] | None = None,
    ) -> None:
        self.result = result or GenerationResult()
        self.errors = list(errors or [])
        self.calls: list[str] = []

    async def generate_sql(
        self,
        question: str,
        schema: DatabaseSchema,
        context: ConversationContext,
    ) -> GenerationResult:
        """Raise the next queued error or return the canned result."""
        self.calls.append(question)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FakeGeneratorFactory:
    """Hands out one fixed generator, or raises on creation."""

    def __init__(self, generator: Any = None, error: Exception | None = None) -> None:  # noqa: ANN401
        self.generator = generator
        self.error = error

    def create_sql_generator(self) -> Any:  # noqa: ANN401
        """Return the fixed generator."""
        if self.error:
            raise self.error
        return self.generator


class FakeSettings:
    """Dict-backed fake satisfying the ``SettingsReader`` protocol."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = values or {}

    def get_setting(self, key: Any, default: Any = None) -> Any:  # noqa: ANN401
        """Look up by the key's string value."""
        name = getattr(key, "value", key)
        return self.values.get(name, default)

    def max_rows(self) -> int:
        """Resolve ``Bot:MaxRows`` the same way the real store does."""
        return resolve_max_rows(self.values.get("Bot:MaxRows"))


class SpyReporter:
    """Spy satisfying the ``ProgressReporter`` protocol.

    Captures every ``step_start`` / ``step_end`` call for assertions.
    """

    def __init__(self) -> None:
        self.events: list[dict[str, str]] = []

    def step_start(self, step: str) -> None:
        """Record a step-start event."""
        self.events.append({"step": step, "status": "started"})

    def step_end(self, step: str) -> None:
        """Record a step-end event."""
        self.events.append({"step": step, "status": "completed"})


async def no_sleep(_delay: float) -> None:
    """Drop-in for ``asyncio.sleep`` that returns immediately."""


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def customers_schema() -> DatabaseSchema:
    """Schema with ``dbo.Customers`` and ``Sales.Orders``."""
    return DatabaseSchema(
        tables=(
            TableInfo(
                name="Customers",
                schema_name="dbo",
                columns=(
                    ColumnInfo(name="CustomerId", data_type="int", is_nullable=False, is_identity=True),
                    ColumnInfo(name="Name", data_type="nvarchar"),
                    ColumnInfo(name="City", data_type="nvarchar"),
                ),
                primary_keys=frozenset({"CustomerId"}),
            ),
            TableInfo(
                name="Orders",
                schema_name="Sales",
                columns=(
                    ColumnInfo(name="OrderId", data_type="int", is_nullable=False, is_identity=True),
                    ColumnInfo(name="CustomerId", data_type="int", is_nullable=False),
                    ColumnInfo(name="Total", data_type="decimal"),
                ),
                primary_keys=frozenset({"OrderId"}),
            ),
        ),
        relationships=(
            RelationshipInfo(
                from_table="Orders",
                from_column="CustomerId",
                to_table="Customers",
                to_column="CustomerId",
            ),
        ),
    )


@pytest.fixture
def empty_context() -> ConversationContext:
    """Return a fresh, empty ``ConversationContext``."""
    return ConversationContext()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Return a ``Settings`` instance whose files all live under ``tmp_path``."""
    return Settings(
        db_connection_string="DRIVER={ODBC Driver 18 for SQL Server};Server=test;Database=TestDB;",
        azure_sql_server="",
        llm_provider="OpenAI",
        max_rows=1000,
        openai_api_key="",
        gemini_api_key="",
        settings_file=str(tmp_path / "appsettings.json"),
        schema_cache_file=str(tmp_path / "schema.catalog.json"),
        secret_key=Fernet.generate_key().decode(),
        secret_key_file=str(tmp_path / ".dbchat.key"),
    )


@pytest.fixture
def fake_settings() -> FakeSettings:
    """Return an empty ``FakeSettings`` (row cap resolves to 1000)."""
    return FakeSettings()


@pytest.fixture
def spy_reporter() -> SpyReporter:
    """Return a fresh ``SpyReporter`` instance."""
    return SpyReporter()


@pytest.fixture
def noop_reporter() -> NoOpReporter:
    """Return a ``NoOpReporter`` from the protocols module."""
    return NoOpReporter()
