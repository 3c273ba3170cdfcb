"""Switching the default connection between named databases."""

import logging
from collections.abc import Callable

from config.store import ConfigurationStore, SettingKey
from entities.shared.sql_client import SqlServerClient
from models import ConnectionTestResult

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_LABEL = "Default (Local)"


class DatabaseConnectionManager:
    """Lists named ``ConnectionStrings:<name>`` entries and switches between them.

    Args:
        store: Settings store holding the connection strings.
        client_factory: Builds an unopened client for a connection string.
    """

    def __init__(
        self,
        store: ConfigurationStore,
        client_factory: Callable[[str], SqlServerClient] = (
            lambda connection_string: SqlServerClient(connection_string=connection_string)
        ),
    ) -> None:
        self._store = store
        self._client_factory = client_factory

    def available_databases(self) -> list[str]:
        """Names of every configured, non-empty connection string."""
        return [
            name
            for name in self._store.connection_names()
            if self._store.get_setting(f"ConnectionStrings:{name}")
        ]

    def current_database(self) -> str:
        """Name whose connection string matches the default, else ``"Default (Local)"``."""
        default = self._store.get_setting(SettingKey.CONNECTION_STRING)
        for name in self.available_databases():
            if self._store.get_setting(f"ConnectionStrings:{name}") == default:
                return name
        return DEFAULT_DATABASE_LABEL

    async def switch_to_database(self, name: str) -> bool:
        """
        Point ``ConnectionStrings:Default`` at the named connection and save.

        Returns:
            False when no connection string is configured under ``name``.
        """
        connection_string = self._store.get_setting(f"ConnectionStrings:{name}")
        if not connection_string:
            logger.warning("Connection string not found for database: %s", name)
            return False

        self._store.set_setting(SettingKey.CONNECTION_STRING, connection_string)
        await self._store.save()
        logger.info("Switched to database: %s", name)
        return True

    async def test_connection(self, connection_string: str | None = None) -> ConnectionTestResult:
        """Open ``connection_string`` (the default when omitted) and run ``SELECT 1``."""
        target = connection_string or self._store.get_setting(SettingKey.CONNECTION_STRING) or ""
        try:
            async with self._client_factory(target) as client:
                await client.ping()
        except Exception as exc:
            logger.warning("Connection test failed: %s", exc)
            return ConnectionTestResult(success=False, message=f"Connection failed: {exc}")
        return ConnectionTestResult(success=True, message="Connection successful!")
