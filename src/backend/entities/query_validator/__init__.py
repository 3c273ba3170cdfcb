"""Query Validator package for validating SQL queries before execution."""

from .sql_text import (
    ensure_top_clause,
    has_top_clause,
    referenced_tables,
    top_is_percent,
    top_limit,
)
from .validator import SqlValidationPipeline, ValidationRule, default_rules, resolve_max_rows

__all__ = [
    "SqlValidationPipeline",
    "ValidationRule",
    "default_rules",
    "ensure_top_clause",
    "has_top_clause",
    "referenced_tables",
    "resolve_max_rows",
    "top_is_percent",
    "top_limit",
]
