"""
Settings routes.

GET returns every setting with API keys masked. PUT applies a batch through
the settings store (validated, all or nothing) and saves it; a masked key
sent back unchanged keeps the stored credential.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_connections, get_store
from config.store import ConfigurationStore, SettingKey, is_secret_key
from entities.shared.connections import DatabaseConnectionManager
from entities.shared.errors import ConfigurationError
from models import ConnectionTestRequest, ConnectionTestResult, SettingsUpdate, SettingsView

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

MASK = "********"


def _masked(key: str, value: Any) -> Any:  # noqa: ANN401
    if is_secret_key(key):
        return MASK if value else ""
    return value


def settings_view(store: ConfigurationStore) -> SettingsView:
    """Every known key plus named connection strings, credentials masked."""
    keys = [key.value for key in SettingKey]
    keys += [f"ConnectionStrings:{name}" for name in store.connection_names()]
    return SettingsView(values={key: _masked(key, store.get_setting(key)) for key in keys})


@router.get("", response_model=SettingsView)
async def read_settings(store: ConfigurationStore = Depends(get_store)) -> SettingsView:
    """Current settings."""
    return settings_view(store)


@router.put("", response_model=SettingsView)
async def update_settings(
    update: SettingsUpdate,
    store: ConfigurationStore = Depends(get_store),
) -> SettingsView:
    """Validate and save a batch of settings."""
    values = {key: value for key, value in update.values.items() if value != MASK}
    try:
        store.update(values)
    except ConfigurationError as exc:
        logger.warning("Rejected settings update: %s", exc.message)
        raise HTTPException(status_code=400, detail=exc.message) from exc

    await store.save()
    if SettingKey.LOG_LEVEL.value in values:
        level = str(values[SettingKey.LOG_LEVEL.value]).upper()
        logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
    logger.info("Settings updated: %s", ", ".join(sorted(values)))
    return settings_view(store)


@router.post("/test-connection", response_model=ConnectionTestResult)
async def test_connection(
    request: ConnectionTestRequest,
    connections: DatabaseConnectionManager = Depends(get_connections),
) -> ConnectionTestResult:
    """Try a connection string without saving it."""
    return await connections.test_connection(request.connection_string)
