"""Tests for ``DatabaseRepository`` with a fake SQL client.

Covers the schema fallback chain (live, in-memory, disk cache, empty),
the never-raising structure probe, and error propagation from execution.
"""

from __future__ import annotations

from typing import Any

import pytest
from entities.shared.errors import SchemaError
from entities.shared.schema_repository import DatabaseRepository
from models import DatabaseSchema, TableInfo, TabularResult


class FakeSqlClient:
    """Stand-in for ``SqlServerClient`` driven by shared state."""

    def __init__(self, state: dict[str, Any]) -> None:
        self.state = state

    async def __aenter__(self) -> FakeSqlClient:
        if self.state.get("connect_error"):
            raise self.state["connect_error"]
        self.state["opened"] = self.state.get("opened", 0) + 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.state["closed"] = self.state.get("closed", 0) + 1

    async def introspect(self) -> DatabaseSchema:
        return self.state["schema"]

    async def describe_first_result_set(self, sql: str) -> bool:
        if self.state.get("describe_error"):
            raise self.state["describe_error"]
        return self.state.get("describe_ok", True)

    async def execute_query(self, sql: str, parameters: dict[str, Any]) -> TabularResult:
        if self.state.get("execute_error"):
            raise self.state["execute_error"]
        self.state.setdefault("executed", []).append((sql, parameters))
        return TabularResult(columns=["n"], rows=[{"n": 1}])


def _repository(state: dict[str, Any], tmp_path) -> DatabaseRepository:
    return DatabaseRepository(
        client_factory=lambda: FakeSqlClient(state),
        cache_path=tmp_path / "schema.catalog.json",
    )


class TestGetSchema:
    """Live introspection and its fallbacks."""

    async def test_live_schema_is_cached_to_disk(self, customers_schema, tmp_path) -> None:
        """A successful read updates the snapshot and writes the cache file."""
        state = {"schema": customers_schema}
        repository = _repository(state, tmp_path)

        schema = await repository.get_schema()

        assert schema == customers_schema
        assert repository.snapshot == customers_schema
        cached = DatabaseSchema.model_validate_json(
            (tmp_path / "schema.catalog.json").read_text(encoding="utf-8")
        )
        assert cached.table_names() == customers_schema.table_names()
        assert state["closed"] == 1

    async def test_falls_back_to_memory_snapshot(self, customers_schema, tmp_path) -> None:
        """After one success, a failure returns the in-memory snapshot."""
        state = {"schema": customers_schema}
        repository = _repository(state, tmp_path)
        await repository.get_schema()

        state["connect_error"] = ConnectionError("db down")
        assert await repository.get_schema() == customers_schema

    async def test_falls_back_to_disk_cache(self, customers_schema, tmp_path) -> None:
        """A fresh repository with no connection reads the cache file."""
        await _repository({"schema": customers_schema}, tmp_path).get_schema()

        repository = _repository({"connect_error": ConnectionError("db down")}, tmp_path)
        schema = await repository.get_schema()

        assert schema.has_table("Customers")
        assert repository.snapshot == schema

    async def test_empty_schema_without_cache(self, tmp_path) -> None:
        """No database and no cache yields an empty schema, not an error."""
        repository = _repository({"connect_error": ConnectionError("db down")}, tmp_path)
        schema = await repository.get_schema()
        assert schema.is_empty

    async def test_corrupt_cache_yields_empty_schema(self, tmp_path) -> None:
        """An unreadable cache file is ignored."""
        (tmp_path / "schema.catalog.json").write_text("{broken", encoding="utf-8")
        repository = _repository({"connect_error": ConnectionError("db down")}, tmp_path)

        assert (await repository.get_schema()).is_empty

    async def test_snapshot_replaced_wholesale(self, customers_schema, tmp_path) -> None:
        """A later introspection swaps in a new snapshot object."""
        state = {"schema": customers_schema}
        repository = _repository(state, tmp_path)
        first = await repository.get_schema()

        state["schema"] = DatabaseSchema(tables=(TableInfo(name="Invoices"),))
        second = await repository.get_schema()

        assert first.has_table("Customers")
        assert repository.snapshot is second
        assert second.table_names() == frozenset({"invoices"})


class TestRefresh:
    """Forced refresh surfaces failures."""

    async def test_refresh_failure_raises(self, tmp_path) -> None:
        """Unlike get_schema, refresh reports the failure."""
        repository = _repository({"connect_error": ConnectionError("db down")}, tmp_path)
        with pytest.raises(SchemaError, match="db down"):
            await repository.refresh_schema()


class TestCheckStructure:
    """The structural probe never raises."""

    async def test_describe_result_returned(self, tmp_path) -> None:
        """The client's verdict is passed through."""
        assert await _repository({"describe_ok": True}, tmp_path).check_structure("SELECT 1")
        assert not await _repository({"describe_ok": False}, tmp_path).check_structure("SELECT 1")

    async def test_errors_become_false(self, tmp_path) -> None:
        """Driver errors and connection errors both mean False."""
        assert (
            await _repository({"describe_error": RuntimeError("bad")}, tmp_path).check_structure("x")
            is False
        )
        assert (
            await _repository({"connect_error": ConnectionError("down")}, tmp_path).check_structure(
                "x"
            )
            is False
        )


class TestExecute:
    """Execution delegates and propagates failures."""

    async def test_execute(self, tmp_path) -> None:
        """Rows come back from the client."""
        state: dict[str, Any] = {}
        result = await _repository(state, tmp_path).execute("SELECT TOP 1 1 AS n", {"a": 1})

        assert result.rows == [{"n": 1}]
        assert state["executed"] == [("SELECT TOP 1 1 AS n", {"a": 1})]

    async def test_execute_error_propagates(self, tmp_path) -> None:
        """Execution errors are re-raised."""
        repository = _repository({"execute_error": RuntimeError("deadlock")}, tmp_path)
        with pytest.raises(RuntimeError, match="deadlock"):
            await repository.execute("SELECT TOP 1 1", {})


class TestConnectionSwitch:
    """Snapshots and cache files belong to one connection."""

    async def test_switch_does_not_reuse_previous_catalog(self, customers_schema, tmp_path) -> None:
        """An offline read after a switch never returns the old database's tables."""
        target = {"dsn": "DSN=sales"}
        state: dict[str, Any] = {"schema": customers_schema}
        repository = DatabaseRepository(
            client_factory=lambda: FakeSqlClient(state),
            cache_path=tmp_path / "schema.catalog.json",
            cache_key=lambda: target["dsn"],
        )
        await repository.get_schema()

        target["dsn"] = "DSN=hr"
        state["connect_error"] = ConnectionError("db down")

        assert repository.snapshot is None
        assert (await repository.get_schema()).is_empty

        target["dsn"] = "DSN=sales"
        assert (await repository.get_schema()).has_table("Customers")

    async def test_cache_file_per_connection(self, customers_schema, tmp_path) -> None:
        """Each connection reads back only its own cache file."""
        base = tmp_path / "schema.catalog.json"
        await DatabaseRepository(
            lambda: FakeSqlClient({"schema": customers_schema}), base, cache_key=lambda: "DSN=sales"
        ).get_schema()

        offline = {"connect_error": ConnectionError("db down")}
        sales = DatabaseRepository(lambda: FakeSqlClient(offline), base, cache_key=lambda: "DSN=sales")
        hr = DatabaseRepository(lambda: FakeSqlClient(offline), base, cache_key=lambda: "DSN=hr")

        assert sales.cache_file() != hr.cache_file()
        assert sales.cache_file().parent == base.parent
        assert not base.exists()
        assert (await sales.get_schema()).has_table("Customers")
        assert (await hr.get_schema()).is_empty

    def test_blank_key_uses_base_file(self, tmp_path) -> None:
        base = tmp_path / "schema.catalog.json"
        assert DatabaseRepository(lambda: FakeSqlClient({}), base).cache_file() == base
