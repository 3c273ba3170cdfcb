"""Common shape of the prompt-driven SQL generators."""

import logging
from abc import ABC, abstractmethod

from entities.shared.language import detect_language
from entities.sql_generator.prompt import build_system_prompt, build_user_prompt, parse_llm_response
from models import ConversationContext, DatabaseSchema, GenerationResult

logger = logging.getLogger(__name__)


class PromptedSqlGenerator(ABC):
    """
    Generator that sends the shared prompt to one provider API.

    Subclasses implement ``_complete`` and convert every provider failure
    into a ``ProviderError`` carrying a ``retryable`` classification.
    """

    provider_name: str = ""

    async def generate_sql(
        self,
        question: str,
        schema: DatabaseSchema,
        context: ConversationContext,
    ) -> GenerationResult:
        """Generate SQL or a clarification request for ``question``."""
        logger.info("Generating SQL with %s for query: %s", self.provider_name, question)

        language = detect_language(question)
        reply = await self._complete(
            build_system_prompt(schema, language),
            build_user_prompt(question, context),
        )
        result = parse_llm_response(reply, language)

        if not result.requires_clarification:
            logger.info("Generated SQL: %s", result.generated_sql[:200])
        return result

    @abstractmethod
    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the provider's raw reply text."""
