"""
Generator factory.

Resolves ``Bot:Provider`` to a ``Provider`` member, builds that provider's
generator from the current settings and wraps it in ``RetryingSqlGenerator``.
Callers never receive an unwrapped generator.
"""

import asyncio
import logging
from collections.abc import Callable

import httpx
from openai import AsyncOpenAI

from config.store import SettingKey
from entities.shared.errors import ConfigurationError
from entities.shared.protocols import SettingsReader, SqlGenerator
from entities.sql_generator.gemini_generator import GeminiSqlGenerator
from entities.sql_generator.ollama_generator import OllamaSqlGenerator
from entities.sql_generator.openai_generator import OpenAISqlGenerator
from entities.sql_generator.retry import RetryingSqlGenerator, Sleep
from models import Provider

logger = logging.getLogger(__name__)


class SqlGeneratorFactory:
    """
    Builds the configured generator, always wrapped for retries.

    Settings are read on every ``create_sql_generator`` call, so a provider
    change saved by the user applies to the next question.

    Args:
        config: Settings store.
        timeout: Per-request timeout for provider calls, in seconds.
        transport: httpx transport for the REST providers (tests only).
        openai_client: Pre-built OpenAI client (tests only).
        sleep: Delay function handed to the retry decorator.
    """

    def __init__(
        self,
        config: SettingsReader,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        openai_client: AsyncOpenAI | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._transport = transport
        self._openai_client = openai_client
        self._sleep = sleep
        self._builders: dict[Provider, Callable[[], SqlGenerator]] = {
            Provider.OPENAI: self._build_openai,
            Provider.GEMINI: self._build_gemini,
            Provider.OLLAMA: self._build_ollama,
        }

    def active_provider(self) -> Provider:
        """Resolve the configured provider.

        Raises:
            ConfigurationError: If the name is not a supported provider.
        """
        name = self._config.get_setting(SettingKey.PROVIDER, Provider.OPENAI.value)
        try:
            return Provider.parse(name)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    def create_sql_generator(self) -> RetryingSqlGenerator:
        """Build the active provider's generator wrapped in the retry decorator."""
        provider = self.active_provider()
        logger.info("Creating SQL generator for provider: %s", provider.value)
        return RetryingSqlGenerator(self._builders[provider](), sleep=self._sleep)

    def _build_openai(self) -> SqlGenerator:
        return OpenAISqlGenerator(
            api_key=self._config.get_setting(SettingKey.OPENAI_API_KEY, "") or "",
            model=self._config.get_setting(SettingKey.OPENAI_MODEL, "gpt-4"),
            base_url=self._config.get_setting(SettingKey.OPENAI_BASE_URL) or None,
            timeout=self._timeout,
            client=self._openai_client,
        )

    def _build_gemini(self) -> SqlGenerator:
        return GeminiSqlGenerator(
            api_key=self._config.get_setting(SettingKey.GEMINI_API_KEY, "") or "",
            model=self._config.get_setting(SettingKey.GEMINI_MODEL, "gemini-pro"),
            base_url=self._config.get_setting(
                SettingKey.GEMINI_BASE_URL, "https://generativelanguage.googleapis.com/v1beta"
            ),
            timeout=self._timeout,
            transport=self._transport,
        )

    def _build_ollama(self) -> SqlGenerator:
        return OllamaSqlGenerator(
            base_url=self._config.get_setting(SettingKey.OLLAMA_BASE_URL, "http://localhost:11434"),
            model=self._config.get_setting(SettingKey.OLLAMA_MODEL, "llama2"),
            timeout=self._timeout,
            transport=self._transport,
        )
