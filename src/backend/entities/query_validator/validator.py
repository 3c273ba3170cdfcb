"""Query validation pipeline.

Decides whether a candidate SQL string may be executed. The pipeline runs
an ordered list of independent rules and returns the first failure. Order
matters: the schema rule assumes the comment rule already ran, so no table
reference can hide inside a comment. No I/O and no framework dependencies,
suitable for direct unit testing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Protocol

from entities.query_validator.sql_text import referenced_tables, top_is_percent, top_limit
from models import DatabaseSchema, ValidationCode, ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 1000

# Statements that modify data or schema, or run code
DML_DDL_KEYWORDS = [
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "EXEC",
    "EXECUTE",
    "MERGE",
    "BULK",
]

# Administrative and OS-bridging procedures / row sources
DANGEROUS_FUNCTIONS = [
    "xp_cmdshell",  # SQL Server command execution
    "sp_configure",  # Server configuration
    "openrowset",  # Ad-hoc remote row source
    "opendatasource",  # Ad-hoc remote row source
    "openquery",  # Linked-server passthrough
    "xp_regread",  # Registry access
    "xp_regwrite",
    "xp_regdelete",
    "xp_instance_regread",
    "xp_instance_regwrite",
    "xp_instance_regdelete",
    "sp_oacreate",  # OLE automation
    "sp_oamethod",
    "sp_oagetproperty",
    "sp_oasetproperty",
    "sp_oadestroy",
]

_DML_DDL_RE = re.compile(r"\b(" + "|".join(DML_DDL_KEYWORDS) + r")\b", re.IGNORECASE)
_COMMENT_RE = re.compile(r"--.*$|/\*.*?\*/", re.IGNORECASE | re.MULTILINE | re.DOTALL)


class ValidationRule(Protocol):
    """A single, pure check over (sql, schema)."""

    name: str

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:
        """Return a passing outcome or the reason the SQL is rejected."""
        ...


class SelectOnlyRule:
    """Rejects DML/DDL/execution keywords and anything not starting with SELECT."""

    name = "select_only"

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:  # noqa: ARG002
        match = _DML_DDL_RE.search(sql)
        if match:
            return ValidationOutcome.failure(
                "Only SELECT statements are allowed. DML/DDL operations are prohibited "
                f"(found '{match.group(1).upper()}').",
                ValidationCode.SELECT_ONLY_VIOLATION,
            )
        if not sql.strip().upper().startswith("SELECT"):
            return ValidationOutcome.failure(
                "Query must start with SELECT statement.",
                ValidationCode.SELECT_ONLY_VIOLATION,
            )
        return ValidationOutcome.success()


class NoSemicolonRule:
    """Rejects any semicolon, so statements cannot be chained."""

    name = "no_semicolon"

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:  # noqa: ARG002
        if ";" in sql:
            return ValidationOutcome.failure(
                "Semicolons are not allowed in queries to prevent SQL injection.",
                ValidationCode.SEMICOLON_VIOLATION,
            )
        return ValidationOutcome.success()


class NoCommentsRule:
    """Rejects line (``--``) and block (``/* */``) comments."""

    name = "no_comments"

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:  # noqa: ARG002
        if _COMMENT_RE.search(sql):
            return ValidationOutcome.failure(
                "SQL comments are not allowed to prevent injection attacks.",
                ValidationCode.COMMENT_VIOLATION,
            )
        return ValidationOutcome.success()


class DangerousFunctionRule:
    """Rejects administrative and OS-bridging procedures by substring."""

    name = "dangerous_function"

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:  # noqa: ARG002
        sql_lower = sql.lower()
        for func in DANGEROUS_FUNCTIONS:
            if func in sql_lower:
                return ValidationOutcome.failure(
                    f"Dangerous function '{func}' is not allowed.",
                    ValidationCode.DANGEROUS_FUNCTION_VIOLATION,
                )
        return ValidationOutcome.success()


class SchemaMembershipRule:
    """Rejects FROM/JOIN references to tables missing from the schema snapshot.

    Skipped entirely when the snapshot has no tables, so the system stays
    usable offline or before the first successful introspection.
    """

    name = "schema_membership"

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:
        if schema.is_empty:
            logger.debug("Schema snapshot is empty; skipping table membership check")
            return ValidationOutcome.success()

        for table in referenced_tables(sql):
            if not schema.has_table(table):
                return ValidationOutcome.failure(
                    f"Table '{table}' does not exist in the database schema.",
                    ValidationCode.SCHEMA_VIOLATION,
                )
        return ValidationOutcome.success()


class RowLimitRule:
    """Requires a ``TOP n`` clause with ``n`` no larger than the configured cap.

    Args:
        max_rows: Callable returning the current row cap. Read on every
            call so a settings change applies to the next query.
    """

    name = "row_limit"

    def __init__(self, max_rows: Callable[[], int]) -> None:
        self._max_rows = max_rows

    def validate(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:  # noqa: ARG002
        max_rows = resolve_max_rows(self._max_rows())
        limit = top_limit(sql)
        if limit is None:
            return ValidationOutcome.failure(
                f"Query must include a TOP clause to limit results to {max_rows} rows or fewer.",
                ValidationCode.ROW_LIMIT_VIOLATION,
            )
        if top_is_percent(sql):
            return ValidationOutcome.failure(
                f"TOP ... PERCENT does not limit the row count. "
                f"Use TOP n with n no larger than {max_rows}.",
                ValidationCode.ROW_LIMIT_EXCEEDED,
            )
        if limit > max_rows:
            return ValidationOutcome.failure(
                f"TOP clause cannot exceed {max_rows} rows. Current value: {limit}",
                ValidationCode.ROW_LIMIT_EXCEEDED,
            )
        return ValidationOutcome.success()


def resolve_max_rows(value: object) -> int:
    """Coerce a configured row cap; unset or non-positive means 1000."""
    try:
        max_rows = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_MAX_ROWS
    return max_rows if max_rows > 0 else DEFAULT_MAX_ROWS


def default_rules(max_rows: Callable[[], int]) -> list[ValidationRule]:
    """Build the rules in their required order.

    Cheap structural checks run first; the schema-aware check runs after
    comments are ruled out; the row-limit check runs last.
    """
    return [
        SelectOnlyRule(),
        NoSemicolonRule(),
        NoCommentsRule(),
        DangerousFunctionRule(),
        SchemaMembershipRule(),
        RowLimitRule(max_rows),
    ]


class SqlValidationPipeline:
    """Runs validation rules in order and stops at the first failure.

    Args:
        max_rows: Callable returning the configured row cap.
        rules: Override the rule list (defaults to ``default_rules``).
    """

    def __init__(
        self,
        max_rows: Callable[[], int] = lambda: DEFAULT_MAX_ROWS,
        rules: Sequence[ValidationRule] | None = None,
    ) -> None:
        self._rules: tuple[ValidationRule, ...] = tuple(
            rules if rules is not None else default_rules(max_rows)
        )

    @property
    def rules(self) -> tuple[ValidationRule, ...]:
        """The rules in evaluation order."""
        return self._rules

    def validate_query(self, sql: str, schema: DatabaseSchema) -> ValidationOutcome:
        """Validate ``sql`` against every rule, fail-fast.

        Args:
            sql: Candidate SQL from a generator.
            schema: Current schema snapshot.

        Returns:
            The first failing rule's outcome, or a passing outcome.
        """
        logger.debug("Validating SQL query: %s", sql[:200])

        for rule in self._rules:
            outcome = rule.validate(sql, schema)
            if not outcome.is_valid:
                logger.warning(
                    "SQL validation failed with rule %s: %s", rule.name, outcome.error_message
                )
                return outcome

        logger.debug("SQL validation passed")
        return ValidationOutcome.success()
