"""SQL generator backed by the Gemini ``generateContent`` REST API."""

import httpx

from entities.shared.errors import ProviderError
from entities.sql_generator.base import PromptedSqlGenerator
from entities.sql_generator.prompt import combine_prompts, status_error

TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 1000


class GeminiSqlGenerator(PromptedSqlGenerator):
    """
    Gemini generator over plain HTTP.

    Args:
        api_key: Google AI Studio API key.
        model: Model name, e.g. ``gemini-pro``.
        base_url: API root including the version segment.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use ``MockTransport``).
    """

    provider_name = "Gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ProviderError("Gemini API key is not configured", retryable=False)
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        body = {
            "contents": [
                {"role": "user", "parts": [{"text": combine_prompts(system_prompt, user_prompt)}]}
            ],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }
        url = f"{self._base_url}/models/{self._model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, params={"key": self._api_key}, json=body)
        except httpx.TransportError as exc:
            raise ProviderError(f"Gemini API error: {exc}", retryable=True) from exc

        if response.is_error:
            raise status_error(self.provider_name, response.status_code, response.reason_phrase)

        try:
            payload = response.json()
            return payload["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                "Gemini API error: unexpected response shape", retryable=False
            ) from exc
