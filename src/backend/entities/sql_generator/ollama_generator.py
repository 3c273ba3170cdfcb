"""SQL generator backed by a local Ollama server."""

import httpx

from entities.shared.errors import ProviderError
from entities.sql_generator.base import PromptedSqlGenerator
from entities.sql_generator.prompt import combine_prompts, status_error

TEMPERATURE = 0.1
NUM_PREDICT = 1000


class OllamaSqlGenerator(PromptedSqlGenerator):
    """Non-streaming ``/api/generate`` client."""

    provider_name = "Ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        body = {
            "model": self._model,
            "prompt": combine_prompts(system_prompt, user_prompt),
            "stream": False,
            "options": {"temperature": TEMPERATURE, "num_predict": NUM_PREDICT},
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(f"{self._base_url}/api/generate", json=body)
        except httpx.TransportError as exc:
            raise ProviderError(f"Ollama API error: {exc}", retryable=True) from exc

        if response.is_error:
            raise status_error(self.provider_name, response.status_code, response.reason_phrase)

        try:
            text = response.json()["response"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(
                "Ollama API error: unexpected response shape", retryable=False
            ) from exc
        return text or ""
