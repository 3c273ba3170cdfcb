"""
Async SQL Server client for execution, structure probing and introspection.

Connects either with a plain ODBC connection string or, when a server
hostname is configured, with an Azure AD access token.
"""

import asyncio
import logging
import re
import struct
from collections import defaultdict
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

import aioodbc
from azure.identity import DefaultAzureCredential

from entities.shared.errors import SqlValidationError
from models import ColumnInfo, DatabaseSchema, RelationshipInfo, TableInfo, TabularResult

logger = logging.getLogger(__name__)

SQL_COPT_SS_ACCESS_TOKEN = 1256

# @name markers. String literals and [bracketed] identifiers match the first
# two branches and are kept as written; @@ROWCOUNT-style functions never match.
_PARAM_RE = re.compile(r"'(?:[^']|'')*'|\[[^\]]*\]|(?<!@)@(\w+)")

# Declared type for every marker when describing a result set; bound values
# arrive from the generators as text.
DESCRIBE_PARAMETER_TYPE = "nvarchar(4000)"

TABLES_QUERY = """
SELECT
    t.TABLE_SCHEMA,
    t.TABLE_NAME,
    c.COLUMN_NAME,
    c.DATA_TYPE,
    c.IS_NULLABLE,
    CASE WHEN ic.name IS NOT NULL THEN 1 ELSE 0 END AS IS_IDENTITY
FROM INFORMATION_SCHEMA.TABLES t
INNER JOIN INFORMATION_SCHEMA.COLUMNS c
    ON t.TABLE_NAME = c.TABLE_NAME AND t.TABLE_SCHEMA = c.TABLE_SCHEMA
LEFT JOIN sys.identity_columns ic
    ON ic.object_id = OBJECT_ID(QUOTENAME(t.TABLE_SCHEMA) + '.' + QUOTENAME(t.TABLE_NAME))
    AND ic.name = c.COLUMN_NAME
WHERE t.TABLE_TYPE = 'BASE TABLE'
ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME, c.ORDINAL_POSITION
"""

PRIMARY_KEYS_QUERY = """
SELECT
    tc.TABLE_SCHEMA,
    tc.TABLE_NAME,
    kcu.COLUMN_NAME
FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
INNER JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
    ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
    AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
ORDER BY tc.TABLE_SCHEMA, tc.TABLE_NAME, kcu.ORDINAL_POSITION
"""

RELATIONSHIPS_QUERY = """
SELECT
    tp.name AS parent_table,
    cp.name AS parent_column,
    tr.name AS referenced_table,
    cr.name AS referenced_column
FROM sys.foreign_keys fk
INNER JOIN sys.foreign_key_columns fkc ON fk.object_id = fkc.constraint_object_id
INNER JOIN sys.tables tp ON fkc.parent_object_id = tp.object_id
INNER JOIN sys.columns cp
    ON fkc.parent_object_id = cp.object_id AND fkc.parent_column_id = cp.column_id
INNER JOIN sys.tables tr ON fkc.referenced_object_id = tr.object_id
INNER JOIN sys.columns cr
    ON fkc.referenced_object_id = cr.object_id AND fkc.referenced_column_id = cr.column_id
"""

DESCRIBE_QUERY = "EXEC sys.sp_describe_first_result_set @tsql = ?, @params = ?"


def get_azure_sql_token(client_id: str | None = None) -> bytes:
    """
    Get an Azure AD token for SQL Database authentication.

    Args:
        client_id: User-assigned managed identity client ID, if any.

    Returns:
        Token bytes formatted for the ODBC driver
    """
    logger.info("Getting SQL token, AZURE_CLIENT_ID=%s", client_id)

    if client_id:
        credential = DefaultAzureCredential(managed_identity_client_id=client_id)
    else:
        credential = DefaultAzureCredential()

    token = credential.get_token("https://database.windows.net/.default")
    logger.info("Token acquired, expires_on=%s", token.expires_on)

    token_bytes = token.token.encode("utf-16-le")
    return struct.pack(f"<I{len(token_bytes)}s", len(token_bytes), token_bytes)


def bind_parameters(sql: str, parameters: dict[str, Any]) -> tuple[str, list[Any]]:
    """
    Rewrite ``@name`` markers as positional ``?`` markers.

    Parameter names match case-insensitively and may be given with or
    without the leading ``@``.

    Returns:
        The rewritten SQL and the values in marker order.

    Raises:
        SqlValidationError: If the SQL references a parameter with no value.
    """
    lookup = {name.lstrip("@").lower(): value for name, value in parameters.items()}
    values: list[Any] = []

    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is None:
            return match.group(0)
        name = match.group(1).lower()
        if name not in lookup:
            raise SqlValidationError(f"No value supplied for parameter '@{match.group(1)}'")
        values.append(lookup[name])
        return "?"

    return _PARAM_RE.sub(_replace, sql), values


def parameter_names(sql: str) -> list[str]:
    """Distinct ``@name`` markers in order of first use, without the ``@``."""
    names: dict[str, str] = {}
    for match in _PARAM_RE.finditer(sql):
        if match.group(1) is not None:
            names.setdefault(match.group(1).lower(), match.group(1))
    return list(names.values())


def parameter_declaration(sql: str) -> str | None:
    """Build the ``@params`` argument of ``sp_describe_first_result_set``.

    Returns:
        ``"@a nvarchar(4000), @b nvarchar(4000)"``, or None without markers.
    """
    names = parameter_names(sql)
    if not names:
        return None
    return ", ".join(f"@{name} {DESCRIBE_PARAMETER_TYPE}" for name in names)


def to_json_safe(value: Any) -> Any:  # noqa: ANN401
    """Convert a driver value into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


class SqlServerClient:
    """
    Async context manager for SQL Server operations.

    Usage:
        async with SqlServerClient(connection_string=dsn) as client:
            result = await client.execute_query("SELECT TOP 10 * FROM Orders", {})
    """

    def __init__(
        self,
        connection_string: str = "",
        server: str = "",
        database: str = "",
        client_id: str | None = None,
        timeout: int = 30,
    ):
        """
        Initialize the SQL client.

        Args:
            connection_string: ODBC connection string. Used when ``server`` is empty.
            server: SQL server hostname for Azure AD token auth.
            database: Database name for Azure AD token auth.
            client_id: Managed-identity client ID for token auth.
            timeout: Login timeout in seconds.
        """
        self.connection_string = connection_string
        self.server = server
        self.database = database
        self.client_id = client_id
        self.timeout = timeout
        self._connection: aioodbc.Connection | None = None

    async def __aenter__(self) -> "SqlServerClient":
        """Establish the database connection."""
        if self.server:
            dsn = (
                f"DRIVER={{ODBC Driver 18 for SQL Server}};"
                f"SERVER={self.server};"
                f"DATABASE={self.database};"
            )
            token_struct = await asyncio.to_thread(get_azure_sql_token, self.client_id)
            self._connection = await aioodbc.connect(
                dsn=dsn,
                timeout=self.timeout,
                attrs_before={SQL_COPT_SS_ACCESS_TOKEN: token_struct},
            )
        elif self.connection_string:
            self._connection = await aioodbc.connect(
                dsn=self.connection_string, timeout=self.timeout
            )
        else:
            raise ValueError("A connection string or SQL server hostname is required")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aioodbc.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection not established. Use 'async with'.")
        return self._connection

    async def _fetch(self, sql: str, values: list[Any] | None = None) -> tuple[list[str], list]:
        async with self._require_connection().cursor() as cursor:
            await cursor.execute(sql, *(values or []))
            columns = [column[0] for column in cursor.description] if cursor.description else []
            rows = await cursor.fetchall() if cursor.description else []
        return columns, rows

    async def execute_query(self, sql: str, parameters: dict[str, Any]) -> TabularResult:
        """
        Execute a SQL query and return its rows.

        Args:
            sql: SQL with ``@name`` parameter markers.
            parameters: Parameter name to value.

        Returns:
            Column names and JSON-safe rows.

        Raises:
            SqlValidationError: If a referenced parameter has no value.
        """
        logger.info("Executing SQL query: %s", sql[:200])
        bound_sql, values = bind_parameters(sql, parameters)
        columns, raw_rows = await self._fetch(bound_sql, values)

        rows = [
            {col: to_json_safe(row[i]) for i, col in enumerate(columns)} for row in raw_rows
        ]
        logger.info("Query executed successfully. Returned %d rows.", len(rows))
        return TabularResult(columns=columns, rows=rows)

    async def describe_first_result_set(self, sql: str) -> bool:
        """Return True when SQL Server can describe the query's result set.

        ``@name`` markers are declared through ``@params`` so parameterized
        queries can be described without values.
        """
        _, rows = await self._fetch(DESCRIBE_QUERY, [sql, parameter_declaration(sql)])
        return len(rows) > 0

    async def ping(self) -> None:
        """Run a trivial query; raises if the connection is unusable."""
        await self._fetch("SELECT 1")

    async def introspect(self) -> DatabaseSchema:
        """Read base tables, columns, primary keys and foreign keys."""
        _, table_rows = await self._fetch(TABLES_QUERY)

        columns_by_table: dict[tuple[str, str], list[ColumnInfo]] = defaultdict(list)
        for schema_name, table_name, column, data_type, nullable, identity in table_rows:
            columns_by_table[(schema_name, table_name)].append(
                ColumnInfo(
                    name=column,
                    data_type=data_type,
                    is_nullable=nullable == "YES",
                    is_identity=int(identity) == 1,
                )
            )

        _, pk_rows = await self._fetch(PRIMARY_KEYS_QUERY)
        keys_by_table: dict[tuple[str, str], set[str]] = defaultdict(set)
        for schema_name, table_name, column in pk_rows:
            keys_by_table[(schema_name, table_name)].add(column)

        _, rel_rows = await self._fetch(RELATIONSHIPS_QUERY)

        tables = tuple(
            TableInfo(
                name=table_name,
                schema_name=schema_name,
                columns=tuple(columns),
                primary_keys=frozenset(keys_by_table.get((schema_name, table_name), ())),
            )
            for (schema_name, table_name), columns in columns_by_table.items()
        )
        relationships = tuple(
            RelationshipInfo(
                from_table=parent_table,
                from_column=parent_column,
                to_table=referenced_table,
                to_column=referenced_column,
            )
            for parent_table, parent_column, referenced_table, referenced_column in rel_rows
        )
        return DatabaseSchema(tables=tables, relationships=relationships)
