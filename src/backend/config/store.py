"""Persisted key/value settings store.

Implements the configuration boundary used by the core: ``get_setting``,
``set_setting`` and ``save``. Keys live in a fixed, colon-separated
namespace (``SettingKey``); defaults come from the environment-backed
``Settings`` and user edits are saved to a JSON file. Credentials (any key
ending in ``:ApiKey``) are encrypted at rest.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from config.cipher import SecretCipher
from config.settings import Settings
from entities.query_validator.validator import resolve_max_rows
from entities.shared.errors import ConfigurationError
from models import Provider

logger = logging.getLogger(__name__)

_SECRET_SUFFIX = ":ApiKey"
_CONNECTION_PREFIX = "ConnectionStrings:"


class SettingKey(str, Enum):
    """The fixed setting key namespace."""

    CONNECTION_STRING = "ConnectionStrings:Default"
    MAX_ROWS = "Bot:MaxRows"
    PROVIDER = "Bot:Provider"
    OPENAI_API_KEY = "Bot:OpenAI:ApiKey"
    OPENAI_MODEL = "Bot:OpenAI:Model"
    OPENAI_BASE_URL = "Bot:OpenAI:BaseUrl"
    GEMINI_API_KEY = "Bot:Gemini:ApiKey"
    GEMINI_MODEL = "Bot:Gemini:Model"
    GEMINI_BASE_URL = "Bot:Gemini:BaseUrl"
    OLLAMA_BASE_URL = "Bot:Ollama:BaseUrl"
    OLLAMA_MODEL = "Bot:Ollama:Model"
    LOG_LEVEL = "Logging:LogLevel:Default"


_KNOWN_KEYS = frozenset(k.value for k in SettingKey)

_PROVIDER_CREDENTIAL: dict[Provider, SettingKey] = {
    Provider.OPENAI: SettingKey.OPENAI_API_KEY,
    Provider.GEMINI: SettingKey.GEMINI_API_KEY,
    Provider.OLLAMA: SettingKey.OLLAMA_BASE_URL,
}


def _defaults_from(settings: Settings) -> dict[str, Any]:
    return {
        SettingKey.CONNECTION_STRING.value: settings.db_connection_string,
        SettingKey.MAX_ROWS.value: settings.max_rows,
        SettingKey.PROVIDER.value: settings.llm_provider,
        SettingKey.OPENAI_API_KEY.value: settings.openai_api_key,
        SettingKey.OPENAI_MODEL.value: settings.openai_model,
        SettingKey.OPENAI_BASE_URL.value: settings.openai_base_url,
        SettingKey.GEMINI_API_KEY.value: settings.gemini_api_key,
        SettingKey.GEMINI_MODEL.value: settings.gemini_model,
        SettingKey.GEMINI_BASE_URL.value: settings.gemini_base_url,
        SettingKey.OLLAMA_BASE_URL.value: settings.ollama_base_url,
        SettingKey.OLLAMA_MODEL.value: settings.ollama_model,
        SettingKey.LOG_LEVEL.value: settings.log_level,
    }


def is_secret_key(key: str) -> bool:
    """True for credential keys, which are encrypted at rest."""
    return key.endswith(_SECRET_SUFFIX)


def _key_name(key: SettingKey | str) -> str:
    return key.value if isinstance(key, SettingKey) else key


def _is_known_key(key: str) -> bool:
    return key.startswith(_CONNECTION_PREFIX) or key in _KNOWN_KEYS


class ConfigurationStore:
    """Settings store layering saved user edits over environment defaults.

    Reads never observe a partially-applied change: each ``set_setting``
    replaces one value whole, and ``save`` serialises a copy.

    Args:
        settings: Environment-backed defaults and file locations.
        cipher: Encrypts credentials; built from ``settings`` when omitted.
    """

    def __init__(self, settings: Settings, cipher: SecretCipher | None = None) -> None:
        self._path = Path(settings.settings_file)
        self._cipher = cipher or SecretCipher(
            key=settings.secret_key, key_file=settings.secret_key_file
        )
        self._defaults = _defaults_from(settings)
        self._values: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        """Location of the settings file."""
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            logger.info("No settings file at %s; using defaults", self._path)
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Malformed settings file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {self._path} must contain a JSON object")
        logger.info("Loaded %d settings from %s", len(data), self._path)
        return data

    def get_setting(self, key: SettingKey | str, default: Any = None) -> Any:
        """Return the value stored under ``key``.

        Saved values win over environment defaults. Credentials are
        returned decrypted.

        Args:
            key: A ``SettingKey`` or a ``ConnectionStrings:<name>`` key.
            default: Returned when the key has no value anywhere.
        """
        name = _key_name(key)
        if name in self._values:
            value = self._values[name]
        else:
            value = self._defaults.get(name, default)

        if is_secret_key(name) and isinstance(value, str) and value:
            return self._cipher.decrypt(value)
        return value

    def set_setting(self, key: SettingKey | str, value: Any) -> None:
        """Replace the value stored under ``key`` (in memory until ``save``).

        Raises:
            ConfigurationError: For keys outside the namespace, a
                non-integer row cap, or an unknown provider name.
        """
        name = _key_name(key)
        if not _is_known_key(name):
            raise ConfigurationError(f"Unknown setting key: {name}")

        if name == SettingKey.PROVIDER.value:
            try:
                value = Provider.parse(value).value
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
        elif name == SettingKey.MAX_ROWS.value:
            try:
                value = int(value)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
        elif is_secret_key(name) and isinstance(value, str) and value:
            value = self._cipher.encrypt(value)

        self._values[name] = value
        logger.debug("Set setting %s", name)

    def connection_names(self) -> list[str]:
        """Return the names of every non-default connection string."""
        names = {
            key[len(_CONNECTION_PREFIX):]
            for key in [*self._defaults, *self._values]
            if key.startswith(_CONNECTION_PREFIX)
        }
        names.discard("Default")
        return sorted(names)

    def max_rows(self) -> int:
        """Resolve the row cap; unset, non-integer or non-positive means 1000."""
        return resolve_max_rows(self.get_setting(SettingKey.MAX_ROWS))

    def update(self, values: Mapping[str, Any]) -> None:
        """Apply several settings at once, or none of them.

        After applying, the connection string must be non-empty and the
        selected provider must have its credential (API key or Ollama URL).

        Raises:
            ConfigurationError: If any value is rejected; earlier values in
                the batch are rolled back.
        """
        previous = dict(self._values)
        try:
            for key, value in values.items():
                self.set_setting(key, value)
            self._check_complete()
        except ConfigurationError:
            self._values = previous
            raise

    def _check_complete(self) -> None:
        if not self.get_setting(SettingKey.CONNECTION_STRING):
            raise ConfigurationError("A database connection string is required")
        try:
            provider = Provider.parse(self.get_setting(SettingKey.PROVIDER))
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        required = _PROVIDER_CREDENTIAL[provider]
        if not self.get_setting(required):
            raise ConfigurationError(f"{required.value} is required for provider {provider.value}")

    async def save(self) -> None:
        """Persist saved values to the settings file atomically."""
        snapshot = dict(self._values)
        await asyncio.to_thread(self._write, snapshot)
        logger.info("Saved %d settings to %s", len(snapshot), self._path)

    def _write(self, snapshot: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(snapshot, handle, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
