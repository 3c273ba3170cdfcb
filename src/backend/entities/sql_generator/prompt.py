"""
Prompt building and response parsing shared by every SQL generator.

All providers are asked for the same line-oriented reply format so one
parser serves them all::

    SQL|<sql_query>|PARAMS|<param1>=<value1>,<param2>=<value2>
    CLARIFICATION_NEEDED|<question>

Replies that ignore the format fall back to a fenced ```sql block, then to
the whole reply text. The result is untrusted either way; the validation
pipeline decides whether it may run.
"""

import logging
import re
from typing import Any

from entities.shared.errors import ProviderError
from entities.shared.language import HINGLISH
from models import ConversationContext, DatabaseSchema, GenerationResult

logger = logging.getLogger(__name__)

CLARIFICATION_MARKER = "CLARIFICATION_NEEDED"
SQL_MARKER = "SQL"
PARAMS_MARKER = "PARAMS"
DEFAULT_CLARIFICATION = "Could you please provide more details?"

CONTEXT_MESSAGE_LIMIT = 5

# HTTP statuses worth another attempt
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

_FENCED_SQL_RE = re.compile(r"```sql\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)

_RULES = """CRITICAL RULES:
1. Generate ONLY SELECT statements - no INSERT, UPDATE, DELETE, or DDL
2. Always use parameterized queries with named parameters (@param)
3. Always include TOP clause to limit results
4. Use only tables and columns from the provided schema
5. If the query is unclear, respond with CLARIFICATION_NEEDED followed by a question"""

_RESPONSE_FORMAT = """RESPONSE FORMAT:
If generating SQL: SQL|<sql_query>|PARAMS|<param1>=<value1>,<param2>=<value2>
If clarification needed: CLARIFICATION_NEEDED|<question>"""


def build_system_prompt(schema: DatabaseSchema, language: str) -> str:
    """Instructions, schema listing and reply format."""
    if language == HINGLISH:
        lines = [
            "You are a SQL query generator that understands both English and Hinglish "
            "(Hindi-English mix). Generate ONLY SELECT statements."
        ]
    else:
        lines = ["You are a SQL query generator. Generate ONLY SELECT statements."]

    lines += [_RULES, "", "DATABASE SCHEMA:"]
    for table in schema.tables:
        lines.append(f"Table: {table.qualified_name}")
        lines.extend(f"  - {column.name} ({column.data_type})" for column in table.columns)
        lines.append("")

    if schema.relationships:
        lines.append("RELATIONSHIPS:")
        lines.extend(
            f"  - {r.from_table}.{r.from_column} -> {r.to_table}.{r.to_column}"
            for r in schema.relationships
        )
        lines.append("")

    lines += [_RESPONSE_FORMAT]
    return "\n".join(lines)


def build_user_prompt(question: str, context: ConversationContext) -> str:
    """The question plus recent conversation turns and session variables."""
    lines = [f"Query: {question}"]

    recent = context.recent_messages(CONTEXT_MESSAGE_LIMIT)
    if recent:
        lines += ["", "Conversation Context:"]
        lines.extend(f"{m.role}: {m.content}" for m in recent)

    if context.session_variables:
        lines += ["", "Session Variables:"]
        lines.extend(f"{key}: {value}" for key, value in context.session_variables.items())

    return "\n".join(lines)


def combine_prompts(system_prompt: str, user_prompt: str) -> str:
    """Single-string prompt for APIs without a separate system role."""
    return f"{system_prompt}\n\n{user_prompt}"


def parse_parameters(param_string: str) -> dict[str, Any]:
    """Parse ``k=v,k2=v2`` into a dict; pairs without ``=`` are skipped."""
    parameters: dict[str, Any] = {}
    if not param_string.strip():
        return parameters

    for pair in param_string.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            parameters[key.strip().lstrip("@")] = value.strip()
    return parameters


def extract_sql(response: str) -> str:
    """Return the first fenced ```sql block, else the trimmed reply."""
    match = _FENCED_SQL_RE.search(response)
    if match:
        return match.group(1).strip()
    return response.strip()


def parse_llm_response(response: str, language: str) -> GenerationResult:
    """
    Turn a raw model reply into a ``GenerationResult``.

    Args:
        response: Text returned by the provider.
        language: Language tag detected from the question.

    Returns:
        The parsed result; SQL is empty when the reply has a ``SQL`` marker
        but nothing after it.
    """
    text = response.strip()

    if text.startswith(CLARIFICATION_MARKER):
        _, sep, question = text.partition("|")
        question = question.strip() if sep else ""
        return GenerationResult(
            requires_clarification=True,
            clarification_question=question or DEFAULT_CLARIFICATION,
            language=language,
        )

    if text.startswith(f"{SQL_MARKER}|"):
        parts = text.split("|")
        sql = parts[1].strip()
        parameters: dict[str, Any] = {}
        if len(parts) >= 4 and parts[2].strip() == PARAMS_MARKER:
            parameters = parse_parameters(parts[3])
        return GenerationResult(generated_sql=sql, parameters=parameters, language=language)

    logger.debug("Reply did not follow the response format; extracting SQL")
    return GenerationResult(generated_sql=extract_sql(text), language=language)


def status_error(provider: str, status_code: int, reason: str = "") -> ProviderError:
    """Classify an HTTP failure status from a provider API."""
    detail = f"HTTP {status_code} {reason}".strip()
    return ProviderError(
        f"{provider} API error: {detail}",
        retryable=status_code in RETRYABLE_STATUS_CODES,
    )
