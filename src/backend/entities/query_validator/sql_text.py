"""Regex-based SQL text inspection.

Everything that reads structure out of raw T-SQL text lives here so the
validation rules and the orchestrator only depend on a few functions:
``referenced_tables``, ``top_limit``, ``top_is_percent`` and
``ensure_top_clause``. These are heuristics, not a parser: subqueries in
``FROM (...)``, comma joins and identifiers hidden inside string literals
are not understood.
"""

from __future__ import annotations

import re

# A single identifier: bracket-quoted (may contain spaces) or a bare word
_IDENT = r"(?:\[[^\]]+\]|\w+)"

# FROM / JOIN followed by a one- to three-part name (db.schema.table)
_TABLE_REF_RE: re.Pattern[str] = re.compile(
    rf"\b(?:FROM|JOIN)\s+({_IDENT}(?:\s*\.\s*{_IDENT}){{0,2}})",
    re.IGNORECASE,
)

# SELECT [DISTINCT] TOP n  or  SELECT [DISTINCT] TOP (n), optionally PERCENT
_TOP_RE: re.Pattern[str] = re.compile(
    r"\bSELECT\s+(?:DISTINCT\s+)?TOP"
    r"(?:\s*\(\s*(?P<paren>\d+)\s*\)|\s+(?P<bare>\d+))"
    r"(?P<percent>\s*PERCENT\b)?",
    re.IGNORECASE,
)

_SELECT_HEAD_RE: re.Pattern[str] = re.compile(r"\bSELECT\b(?:\s+DISTINCT\b)?", re.IGNORECASE)


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if identifier.startswith("[") and identifier.endswith("]"):
        return identifier[1:-1]
    return identifier


def referenced_tables(sql: str) -> list[str]:
    """Return the unqualified table names referenced by FROM / JOIN clauses.

    Schema and database qualifiers are dropped and bracket quoting is
    removed, so ``FROM [dbo].[Order Details]`` yields ``Order Details``.
    Names are returned in order of appearance, duplicates included.

    Args:
        sql: Candidate SQL text.

    Returns:
        List of table names as written (case preserved).
    """
    tables: list[str] = []
    for match in _TABLE_REF_RE.finditer(sql):
        parts = re.findall(_IDENT, match.group(1))
        if parts:
            tables.append(_unquote(parts[-1]))
    return tables


def top_limit(sql: str) -> int | None:
    """Return the numeric limit of the first ``TOP`` clause, or ``None``.

    Only a ``TOP`` directly following ``SELECT`` (optionally after
    ``DISTINCT``) counts.
    """
    match = _TOP_RE.search(sql)
    if match is None:
        return None
    return int(match.group("paren") or match.group("bare"))


def top_is_percent(sql: str) -> bool:
    """True when the first ``TOP`` clause is ``TOP n PERCENT``.

    ``n`` is then a share of the table, not a row count, so it does not
    bound the result size.
    """
    match = _TOP_RE.search(sql)
    return match is not None and match.group("percent") is not None


def has_top_clause(sql: str) -> bool:
    """True when the query already carries a ``TOP`` row limit."""
    return top_limit(sql) is not None


def ensure_top_clause(sql: str, max_rows: int) -> str:
    """Insert ``TOP <max_rows>`` after the first ``SELECT [DISTINCT]`` if missing.

    Idempotent: SQL that already has a ``TOP`` clause is returned unchanged,
    as is text without any ``SELECT`` keyword.

    Args:
        sql: Validated SQL text.
        max_rows: Row cap to insert.

    Returns:
        SQL guaranteed to carry a ``TOP`` clause when it has a ``SELECT``.
    """
    if has_top_clause(sql):
        return sql

    match = _SELECT_HEAD_RE.search(sql)
    if match is None:
        return sql

    end = match.end()
    separator = "" if sql[end:end + 1].isspace() else " "
    return f"{sql[:end]} TOP {max_rows}{separator}{sql[end:]}"
