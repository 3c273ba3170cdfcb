"""Error recovery helpers for failed queries.

Pure functions that turn a failure classification into the user-facing
error message and a short suggestion for rephrasing the question.
"""

from models import DatabaseSchema, ValidationCode

PROVIDER_PREFIX = "AI service error: "
VALIDATION_PREFIX = "Query validation error: "
STRUCTURAL_MESSAGE = (
    "The generated SQL query has structural issues and cannot be executed safely."
)
UNEXPECTED_PREFIX = "An unexpected error occurred: "

# Validation code -> rephrasing suggestion
_RECOVERY_HINTS: dict[str, str] = {
    ValidationCode.SELECT_ONLY_VIOLATION.value: (
        "Only questions that read data are supported. Ask what you want to see "
        "rather than what you want to change."
    ),
    ValidationCode.SEMICOLON_VIOLATION.value: (
        "Ask one question at a time so it can be answered with a single query."
    ),
    ValidationCode.COMMENT_VIOLATION.value: (
        "Try rephrasing the question in plain words without SQL fragments."
    ),
    ValidationCode.DANGEROUS_FUNCTION_VIOLATION.value: (
        "Server administration and external data sources are not available. "
        "Ask about the data in the current database instead."
    ),
    ValidationCode.SCHEMA_VIOLATION.value: (
        "The question mentions data that isn't in the current database. "
        "Try naming one of the available tables."
    ),
    ValidationCode.ROW_LIMIT_VIOLATION.value: (
        "Try asking for a specific number of rows, for example 'top 10'."
    ),
    ValidationCode.ROW_LIMIT_EXCEEDED.value: (
        "Ask for fewer rows, or narrow the question with a filter."
    ),
}

_STRUCTURAL_HINT = (
    "The database schema may have changed. Refresh the schema and ask again."
)

_TABLE_SAMPLE_SIZE = 5


def recovery_hint(code: str | None, schema: DatabaseSchema | None = None) -> str | None:
    """Return a rephrasing suggestion for a failure code.

    Args:
        code: A ``ValidationCode`` value, ``"STRUCTURAL"``, or None.
        schema: When given, schema rejections list a few known tables.

    Returns:
        The suggestion, or None for codes without one.
    """
    if code == "STRUCTURAL":
        return _STRUCTURAL_HINT

    hint = _RECOVERY_HINTS.get(code) if code else None
    if hint and code == ValidationCode.SCHEMA_VIOLATION.value and schema and not schema.is_empty:
        names = sorted(t.name for t in schema.tables)[:_TABLE_SAMPLE_SIZE]
        hint = f"{hint} Available tables include: {', '.join(names)}."
    return hint


def provider_message(detail: str) -> str:
    """User-facing message for a generator failure."""
    return f"{PROVIDER_PREFIX}{detail}"


def validation_message(detail: str) -> str:
    """User-facing message for a validation error raised outside the pipeline."""
    return f"{VALIDATION_PREFIX}{detail}"


def unexpected_message(detail: str) -> str:
    """User-facing message for any other failure."""
    return f"{UNEXPECTED_PREFIX}{detail}"
