"""Centralized application settings loaded from environment variables.

All process-level configuration is defined once here. Values in this class
also act as the defaults for the persisted settings store
(``config.store.ConfigurationStore``), which layers user edits saved to
``appsettings.json`` on top of them. Other modules should import
``get_settings()`` rather than calling ``os.getenv()`` directly.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables.

    Field names are **lowercased** versions of the env-var names.
    ``pydantic-settings`` maps them automatically (case-insensitive).

    Example::

        settings = Settings()  # reads .env + real env
        provider = settings.llm_provider
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Database ----------------------------------------------------------

    db_connection_string: str = (
        "DRIVER={ODBC Driver 18 for SQL Server};Server=localhost;Database=SampleDB;"
        "Trusted_Connection=yes;TrustServerCertificate=yes;"
    )
    """Default ODBC connection string (``ConnectionStrings:Default``)."""

    azure_sql_server: str = ""
    """SQL Server hostname. When set, Azure AD token auth is used instead."""

    azure_sql_database: str = ""
    """Target database name for Azure AD token auth."""

    azure_client_id: str | None = None
    """Managed-identity client ID (None → system-assigned)."""

    # -- Generators --------------------------------------------------------

    llm_provider: str = "OpenAI"
    """Active generator: OpenAI, Gemini or Ollama (``Bot:Provider``)."""

    max_rows: int = 1000
    """Row cap enforced on every query (``Bot:MaxRows``)."""

    openai_api_key: str = ""
    openai_model: str = "gpt-4"
    openai_base_url: str = "https://api.openai.com/v1"

    gemini_api_key: str = ""
    gemini_model: str = "gemini-pro"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama2"

    llm_timeout_seconds: float = 60.0
    """Per-call timeout for generator network requests."""

    # -- Persistence -------------------------------------------------------

    settings_file: str = "appsettings.json"
    """JSON file holding user-edited settings."""

    schema_cache_file: str = "schema.catalog.json"
    """Last-known-good schema snapshot used when introspection fails."""

    secret_key: str | None = None
    """Fernet key for encrypting API keys at rest (None → key file)."""

    secret_key_file: str = ".dbchat.key"
    """Generated Fernet key location when ``secret_key`` is not set."""

    # -- Operational -------------------------------------------------------

    log_level: str = "INFO"
    """Default log level (``Logging:LogLevel:Default``)."""

    session_ttl_seconds: int = 30 * 60
    """Idle lifetime of a conversation session."""

    max_session_cache_size: int = 1000
    """Upper bound on cached conversation sessions."""


def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Uses ``lru_cache`` semantics via a module-level singleton so the
    ``.env`` file is read at most once per process.

    Returns:
        The global ``Settings`` object.
    """
    return _settings


_settings = Settings()
