"""
Schema provider and query executor backed by SQL Server.

``DatabaseRepository`` implements both the ``SchemaProvider`` and the
``QueryExecutor`` protocols. Each schema read introspects the live
database. When that fails it falls back to the in-memory snapshot, then
to the JSON cache on disk, then to an empty schema. Snapshot and cache
belong to one connection: after a database switch neither is reused.
"""

import asyncio
import hashlib
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from config.settings import Settings
from config.store import ConfigurationStore, SettingKey
from entities.shared.errors import SchemaError
from entities.shared.sql_client import SqlServerClient
from models import DatabaseSchema, TabularResult

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], SqlServerClient]
CacheKey = Callable[[], str]


def default_client_factory(settings: Settings, store: ConfigurationStore) -> ClientFactory:
    """Build clients from the current settings on every call.

    The connection string is read per connection, so switching databases
    applies to the next query without rebuilding the repository.
    """

    def _factory() -> SqlServerClient:
        if settings.azure_sql_server:
            return SqlServerClient(
                server=settings.azure_sql_server,
                database=settings.azure_sql_database,
                client_id=settings.azure_client_id,
            )
        return SqlServerClient(
            connection_string=store.get_setting(SettingKey.CONNECTION_STRING, "") or ""
        )

    return _factory


def default_cache_key(settings: Settings, store: ConfigurationStore) -> CacheKey:
    """Identify the database the next client will connect to."""

    def _key() -> str:
        if settings.azure_sql_server:
            return f"{settings.azure_sql_server}/{settings.azure_sql_database}"
        return store.get_setting(SettingKey.CONNECTION_STRING, "") or ""

    return _key


class DatabaseRepository:
    """
    SQL Server schema provider, structure probe and executor.

    Args:
        client_factory: Returns a new, unopened ``SqlServerClient``.
        cache_path: Location of the persisted schema snapshot.
        cache_key: Names the current connection. A non-empty key gets its
            own cache file next to ``cache_path``.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        cache_path: str | Path,
        cache_key: CacheKey = lambda: "",
    ) -> None:
        self._client_factory = client_factory
        self._cache_path = Path(cache_path)
        self._cache_key = cache_key
        self._current: tuple[str, DatabaseSchema] | None = None

    @property
    def snapshot(self) -> DatabaseSchema | None:
        """Last schema loaded for the current connection, if any."""
        current = self._current
        if current is None or current[0] != self._cache_key():
            return None
        return current[1]

    def cache_file(self, key: str | None = None) -> Path:
        """Cache file for ``key`` (the current connection when omitted)."""
        key = self._cache_key() if key is None else key
        if not key:
            return self._cache_path
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        return self._cache_path.with_name(
            f"{self._cache_path.stem}.{digest}{self._cache_path.suffix}"
        )

    async def _introspect(self) -> DatabaseSchema:
        key = self._cache_key()
        logger.info("Starting database schema introspection")
        async with self._client_factory() as client:
            schema = await client.introspect()

        # Single reference assignment; readers see the old or new snapshot
        self._current = (key, schema)
        await self._save_cache(self.cache_file(key), schema)
        logger.info("Schema introspection completed. Found %d tables", len(schema.tables))
        return schema

    async def get_schema(self) -> DatabaseSchema:
        """Return the live schema, falling back to the last known good one."""
        try:
            return await self._introspect()
        except Exception:
            logger.exception("Error during schema introspection")

        snapshot = self.snapshot
        if snapshot is not None:
            logger.warning("Using in-memory schema snapshot due to introspection failure")
            return snapshot

        key = self._cache_key()
        cached = await self._load_cache(self.cache_file(key))
        if cached is not None:
            logger.warning("Loading schema from cache due to introspection failure")
            self._current = (key, cached)
            return cached

        logger.warning("No schema cache available; continuing with an empty schema")
        return DatabaseSchema()

    async def refresh_schema(self) -> DatabaseSchema:
        """Force a fresh introspection.

        Raises:
            SchemaError: If the database cannot be introspected.
        """
        try:
            return await self._introspect()
        except Exception as exc:
            raise SchemaError(f"Schema refresh failed: {exc}") from exc

    async def check_structure(self, sql: str) -> bool:
        """Probe ``sql`` with ``sp_describe_first_result_set``; never raises."""
        try:
            async with self._client_factory() as client:
                return await client.describe_first_result_set(sql)
        except Exception as exc:
            logger.warning("SQL structure validation failed for: %s (%s)", sql[:200], exc)
            return False

    async def execute(self, sql: str, parameters: dict[str, Any]) -> TabularResult:
        """Execute ``sql`` with bound parameters; errors propagate."""
        try:
            async with self._client_factory() as client:
                return await client.execute_query(sql, parameters)
        except Exception:
            logger.error("Error executing SQL query: %s", sql[:200])
            raise

    async def _save_cache(self, path: Path, schema: DatabaseSchema) -> None:
        try:
            await asyncio.to_thread(self._write_cache, path, schema.model_dump_json(indent=2))
            logger.debug("Schema cache saved to %s", path)
        except OSError as exc:
            logger.warning("Failed to save schema cache: %s", exc)

    @staticmethod
    def _write_cache(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".schema-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    async def _load_cache(path: Path) -> DatabaseSchema | None:
        if not path.exists():
            return None
        try:
            payload = await asyncio.to_thread(path.read_text, encoding="utf-8")
            schema = DatabaseSchema.model_validate_json(payload)
        except (OSError, ValidationError) as exc:
            logger.warning("Failed to load schema cache: %s", exc)
            return None
        logger.debug("Schema cache loaded from %s", path)
        return schema
