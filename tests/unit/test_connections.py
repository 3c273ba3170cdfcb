"""Tests for ``DatabaseConnectionManager``."""

from __future__ import annotations

from config.store import ConfigurationStore, SettingKey
from entities.shared.connections import DEFAULT_DATABASE_LABEL, DatabaseConnectionManager
from entities.shared.schema_repository import default_cache_key


def _store_with_connections(test_settings) -> ConfigurationStore:
    store = ConfigurationStore(test_settings)
    store.set_setting("ConnectionStrings:Reporting", "DSN=reporting")
    store.set_setting("ConnectionStrings:Archive", "DSN=archive")
    store.set_setting("ConnectionStrings:Empty", "")
    return store


class TestListing:
    """Named connections."""

    def test_available_skips_default_and_empty(self, test_settings) -> None:
        """Default and blank entries are not switch targets."""
        manager = DatabaseConnectionManager(_store_with_connections(test_settings))
        assert manager.available_databases() == ["Archive", "Reporting"]

    def test_current_is_default_label_without_match(self, test_settings) -> None:
        """The environment connection matches no named entry."""
        manager = DatabaseConnectionManager(_store_with_connections(test_settings))
        assert manager.current_database() == DEFAULT_DATABASE_LABEL


class TestSwitching:
    """Switching rewrites the default connection."""

    async def test_switch_persists(self, test_settings) -> None:
        """The default points at the chosen entry and survives a reload."""
        store = _store_with_connections(test_settings)
        manager = DatabaseConnectionManager(store)

        assert await manager.switch_to_database("Reporting") is True
        assert manager.current_database() == "Reporting"

        reloaded = ConfigurationStore(test_settings)
        assert reloaded.get_setting(SettingKey.CONNECTION_STRING) == "DSN=reporting"

    async def test_unknown_name(self, test_settings) -> None:
        """Unknown or blank names leave the default alone."""
        store = _store_with_connections(test_settings)
        manager = DatabaseConnectionManager(store)
        before = store.get_setting(SettingKey.CONNECTION_STRING)

        assert await manager.switch_to_database("Missing") is False
        assert await manager.switch_to_database("Empty") is False
        assert store.get_setting(SettingKey.CONNECTION_STRING) == before

    async def test_switch_changes_cache_key(self, test_settings) -> None:
        """Each database gets its own schema cache identity."""
        store = _store_with_connections(test_settings)
        key = default_cache_key(test_settings, store)
        before = key()

        await DatabaseConnectionManager(store).switch_to_database("Reporting")

        assert key() == "DSN=reporting"
        assert key() != before


class FakeClient:
    """Async context manager standing in for ``SqlServerClient``."""

    def __init__(self, connection_string: str, error: Exception | None = None) -> None:
        self.connection_string = connection_string
        self.error = error
        self.pinged = False

    async def __aenter__(self) -> "FakeClient":
        if not self.connection_string:
            raise ValueError("A connection string or SQL server hostname is required")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def ping(self) -> None:
        self.pinged = True
        if self.error:
            raise self.error


class TestConnectionCheck:
    """Trying a connection string without saving it."""

    async def test_success(self, test_settings) -> None:
        """The given string is opened and pinged."""
        clients: list[FakeClient] = []

        def factory(connection_string: str) -> FakeClient:
            clients.append(FakeClient(connection_string))
            return clients[-1]

        store = _store_with_connections(test_settings)
        result = await DatabaseConnectionManager(store, client_factory=factory).test_connection(
            "DSN=archive"
        )

        assert result.success is True
        assert result.message == "Connection successful!"
        assert clients[0].connection_string == "DSN=archive"
        assert clients[0].pinged is True

    async def test_defaults_to_current_connection(self, test_settings) -> None:
        """Without an argument the saved default is tried."""
        seen: list[str] = []

        def factory(connection_string: str) -> FakeClient:
            seen.append(connection_string)
            return FakeClient(connection_string)

        store = _store_with_connections(test_settings)
        await DatabaseConnectionManager(store, client_factory=factory).test_connection()

        assert seen == [store.get_setting(SettingKey.CONNECTION_STRING)]

    async def test_failure_is_reported(self, test_settings) -> None:
        """Driver errors become an unsuccessful result and nothing is saved."""
        store = _store_with_connections(test_settings)
        manager = DatabaseConnectionManager(
            store,
            client_factory=lambda cs: FakeClient(cs, error=RuntimeError("login failed")),
        )

        result = await manager.test_connection("DSN=broken")

        assert result.success is False
        assert result.message == "Connection failed: login failed"
        assert not store.path.exists()
