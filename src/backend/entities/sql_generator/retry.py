"""
Retry decorator for SQL generators.

Wraps any ``SqlGenerator`` behind the same contract. Transient failures
are retried up to ``MAX_RETRIES`` times with a fixed escalating delay;
everything else propagates on the first attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

import httpx
import openai

from entities.shared.errors import ProviderError
from entities.shared.protocols import SqlGenerator
from models import ConversationContext, DatabaseSchema, GenerationResult

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)

# Lower-cased markers of a transient provider failure
RETRYABLE_MESSAGE_MARKERS = (
    "rate limit",
    "timeout",
    "service unavailable",
    "internal server error",
    "502",
    "503",
    "504",
)

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    openai.APIConnectionError,
    TimeoutError,
)

Sleep = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """Decide whether ``error`` is worth another attempt.

    Transport failures and timeouts always are. A ``ProviderError`` uses
    its own ``retryable`` flag when set, else the message markers. Any
    other exception is not.
    """
    if isinstance(error, _TRANSIENT_ERRORS):
        return True
    if isinstance(error, ProviderError):
        if error.retryable is not None:
            return error.retryable
        message = error.message.lower()
        return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)
    return False


class RetryingSqlGenerator:
    """
    ``SqlGenerator`` that retries transient failures of an inner generator.

    Args:
        inner: The generator to wrap.
        delays: Delay before each retry; its length is the retry count.
        sleep: Awaitable sleep, injectable so tests run without waiting.
    """

    def __init__(
        self,
        inner: SqlGenerator,
        delays: Sequence[float] = RETRY_DELAYS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._inner = inner
        self._delays = tuple(delays)
        self._sleep = sleep

    @property
    def inner(self) -> SqlGenerator:
        """The wrapped generator."""
        return self._inner

    async def generate_sql(
        self,
        question: str,
        schema: DatabaseSchema,
        context: ConversationContext,
    ) -> GenerationResult:
        """Delegate to the inner generator, retrying transient failures.

        Raises:
            ProviderError: Wrapping the last cause once every retry failed.
            Exception: Any non-retryable error, unchanged.
        """
        max_attempts = len(self._delays) + 1
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            if attempt > 0:
                logger.warning(
                    "Retrying SQL generation, attempt %d/%d", attempt + 1, max_attempts
                )
                await self._sleep(self._delays[attempt - 1])

            try:
                return await self._inner.generate_sql(question, schema, context)
            except Exception as exc:
                if not is_retryable(exc):
                    logger.error("Non-retryable error during SQL generation: %s", exc)
                    raise
                last_error = exc
                logger.warning(
                    "Retryable error during SQL generation (attempt %d): %s", attempt + 1, exc
                )

        logger.error("All retry attempts failed for SQL generation")
        raise ProviderError(
            "Failed to generate SQL after multiple attempts", retryable=False
        ) from last_error
