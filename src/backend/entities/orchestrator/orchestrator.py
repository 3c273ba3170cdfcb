"""Query orchestrator: one natural-language question in, one typed result out.

Stages run strictly in order::

    load schema -> generate -> (clarification | validate -> enforce TOP
    -> check structure -> execute)

Every exit, including an unexpected exception, is a ``QueryExecutionResult``.
Nothing raised by a collaborator escapes ``process_query``; only
``asyncio.CancelledError`` does, since it is not an ``Exception``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from entities.query_validator.sql_text import ensure_top_clause
from entities.query_validator.validator import SqlValidationPipeline
from entities.shared.error_recovery import (
    STRUCTURAL_MESSAGE,
    provider_message,
    recovery_hint,
    unexpected_message,
    validation_message,
)
from entities.shared.errors import DbChatError, ProviderError, SqlValidationError
from entities.shared.protocols import (
    NoOpReporter,
    ProgressReporter,
    QueryExecutor,
    SchemaProvider,
    SettingsReader,
)
from entities.sql_generator.factory import SqlGeneratorFactory
from models import ConversationContext, DatabaseSchema, QueryExecutionResult

logger = logging.getLogger(__name__)

STRUCTURAL_CODE = "STRUCTURAL"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class QueryOrchestrator:
    """
    Coordinates generation, validation and execution for one question.

    Args:
        generator_factory: Builds the configured, retry-wrapped generator.
        validator: Ordered safety rules for candidate SQL.
        schema_provider: Schema snapshot and structural probe.
        executor: Runs the final SQL.
        config: Settings store; supplies the row cap.
    """

    def __init__(
        self,
        generator_factory: SqlGeneratorFactory,
        validator: SqlValidationPipeline,
        schema_provider: SchemaProvider,
        executor: QueryExecutor,
        config: SettingsReader,
    ) -> None:
        self._generator_factory = generator_factory
        self._validator = validator
        self._schema_provider = schema_provider
        self._executor = executor
        self._config = config

    async def process_query(
        self,
        question: str,
        context: ConversationContext,
        reporter: ProgressReporter | None = None,
    ) -> QueryExecutionResult:
        """Answer ``question`` with rows, a clarification request or a failure.

        Args:
            question: Natural-language question (English or Hinglish).
            context: Conversation snapshot; read, never modified.
            reporter: Receives step start/end events. One per request.

        Returns:
            The unified result. ``execution_time_ms`` covers every stage.
        """
        started = time.perf_counter()
        reporter = reporter or NoOpReporter()
        language = context.preferred_language
        candidate_sql = ""
        parameters: dict[str, Any] = {}
        schema: DatabaseSchema | None = None

        logger.info("Processing query: %s", question)

        try:
            reporter.step_start("Loading schema")
            schema = await self._schema_provider.get_schema()
            reporter.step_end("Loading schema")

            reporter.step_start("Generating SQL")
            generator = self._generator_factory.create_sql_generator()
            generation = await generator.generate_sql(question, schema, context)
            reporter.step_end("Generating SQL")
            language = generation.language

            if generation.requires_clarification:
                logger.info("Clarification needed: %s", generation.clarification_question)
                return QueryExecutionResult(
                    success=False,
                    requires_clarification=True,
                    clarification_question=generation.clarification_question,
                    failure_kind="clarification",
                    language=language,
                    execution_time_ms=_elapsed_ms(started),
                )

            candidate_sql = generation.generated_sql
            parameters = dict(generation.parameters)
            logger.info("Generated SQL: %s", candidate_sql[:200])

            reporter.step_start("Validating SQL")
            outcome = self._validator.validate_query(candidate_sql, schema)
            reporter.step_end("Validating SQL")
            if not outcome.is_valid:
                code = outcome.error_code.value if outcome.error_code else None
                return QueryExecutionResult(
                    success=False,
                    generated_sql=candidate_sql,
                    parameters=parameters,
                    error_message=outcome.error_message,
                    error_code=code,
                    failure_kind="validation",
                    recovery_hint=recovery_hint(code, schema),
                    language=language,
                    execution_time_ms=_elapsed_ms(started),
                )

            final_sql = ensure_top_clause(candidate_sql, self._config.max_rows())
            if final_sql != candidate_sql:
                logger.info("Inserted TOP clause: %s", final_sql[:200])

            reporter.step_start("Checking structure")
            is_sound = await self._schema_provider.check_structure(final_sql)
            reporter.step_end("Checking structure")
            if not is_sound:
                logger.warning("Structural pre-check failed for: %s", final_sql[:200])
                return QueryExecutionResult(
                    success=False,
                    generated_sql=final_sql,
                    parameters=parameters,
                    error_message=STRUCTURAL_MESSAGE,
                    error_code=STRUCTURAL_CODE,
                    failure_kind="structural",
                    recovery_hint=recovery_hint(STRUCTURAL_CODE),
                    language=language,
                    execution_time_ms=_elapsed_ms(started),
                )

            reporter.step_start("Executing query")
            results = await self._executor.execute(final_sql, parameters)
            reporter.step_end("Executing query")

            elapsed = _elapsed_ms(started)
            logger.info("Query executed successfully: %d rows in %d ms", results.row_count, elapsed)
            return QueryExecutionResult(
                success=True,
                results=results,
                generated_sql=final_sql,
                parameters=parameters,
                language=language,
                execution_time_ms=elapsed,
                row_count=results.row_count,
            )

        except ProviderError as exc:
            logger.error("SQL generator error: %s", exc.message)
            return QueryExecutionResult(
                success=False,
                error_message=provider_message(exc.message),
                error_code=exc.code,
                failure_kind="provider",
                language=language,
                execution_time_ms=_elapsed_ms(started),
            )
        except SqlValidationError as exc:
            logger.warning("SQL validation error: %s", exc.message)
            return QueryExecutionResult(
                success=False,
                generated_sql=candidate_sql,
                parameters=parameters,
                error_message=validation_message(exc.message),
                error_code=exc.code,
                failure_kind="validation",
                language=language,
                execution_time_ms=_elapsed_ms(started),
            )
        except DbChatError as exc:
            logger.error("Query processing failed: %s", exc.message)
            return QueryExecutionResult(
                success=False,
                generated_sql=candidate_sql,
                error_message=unexpected_message(exc.message),
                error_code=exc.code,
                failure_kind="unexpected",
                language=language,
                execution_time_ms=_elapsed_ms(started),
            )
        except Exception as exc:
            logger.exception("Unexpected error processing query")
            return QueryExecutionResult(
                success=False,
                generated_sql=candidate_sql,
                error_message=unexpected_message(str(exc)),
                failure_kind="unexpected",
                language=language,
                execution_time_ms=_elapsed_ms(started),
            )
