"""SQL generator backed by the OpenAI chat completions API."""

import openai
from openai import AsyncOpenAI

from entities.shared.errors import ProviderError
from entities.sql_generator.base import PromptedSqlGenerator
from entities.sql_generator.prompt import RETRYABLE_STATUS_CODES

TEMPERATURE = 0.1
MAX_TOKENS = 1000


class OpenAISqlGenerator(PromptedSqlGenerator):
    """
    Chat-completions generator.

    Args:
        api_key: OpenAI API key.
        model: Chat model name, e.g. ``gpt-4``.
        base_url: API root; allows OpenAI-compatible endpoints.
        timeout: Per-request timeout in seconds.
        client: Pre-built client (tests inject a fake).
    """

    provider_name = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None and not api_key:
            raise ProviderError("OpenAI API key is not configured", retryable=False)
        self._model = model
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout,
            max_retries=0,
        )

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
        except openai.APIConnectionError as exc:
            # Includes APITimeoutError
            raise ProviderError(f"OpenAI API error: {exc}", retryable=True) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"OpenAI API error: HTTP {exc.status_code} {exc.message}",
                retryable=exc.status_code in RETRYABLE_STATUS_CODES,
            ) from exc
        except openai.OpenAIError as exc:
            raise ProviderError(f"OpenAI API error: {exc}") from exc

        if not response.choices or response.choices[0].message.content is None:
            raise ProviderError("OpenAI API error: empty response", retryable=False)
        return response.choices[0].message.content
