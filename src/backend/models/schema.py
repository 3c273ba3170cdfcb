"""
Database schema snapshot models.

A ``DatabaseSchema`` is an immutable point-in-time catalog produced by
the schema repository. It is replaced wholesale on refresh and never
patched in place, so readers can share one instance safely.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ColumnInfo(BaseModel):
    """A column definition read from the live catalog."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name")
    data_type: str = Field(default="", description="Declared SQL type, e.g. 'nvarchar'")
    is_nullable: bool = Field(default=True)
    is_identity: bool = Field(default=False, description="Identity / auto-increment column")


class TableInfo(BaseModel):
    """A base table with its ordered columns and primary-key column names."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Unqualified table name (e.g., 'Customers')")
    schema_name: str = Field(default="dbo", description="Owning schema / namespace")
    columns: tuple[ColumnInfo, ...] = Field(default_factory=tuple)
    primary_keys: frozenset[str] = Field(default_factory=frozenset)

    @property
    def qualified_name(self) -> str:
        """Return ``schema.name``."""
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name


class RelationshipInfo(BaseModel):
    """A foreign-key edge between two tables."""

    model_config = ConfigDict(frozen=True)

    from_table: str
    from_column: str
    to_table: str
    to_column: str


class DatabaseSchema(BaseModel):
    """
    Catalog snapshot used for prompt building and schema-membership checks.

    Table order is irrelevant; lookups are case-insensitive by table name.
    """

    model_config = ConfigDict(frozen=True)

    tables: tuple[TableInfo, ...] = Field(default_factory=tuple)
    relationships: tuple[RelationshipInfo, ...] = Field(default_factory=tuple)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        """True when the snapshot has no tables (offline / bootstrap)."""
        return not self.tables

    def table_names(self) -> frozenset[str]:
        """Return the lower-cased set of unqualified table names."""
        return frozenset(t.name.lower() for t in self.tables)

    def has_table(self, name: str) -> bool:
        """Case-insensitive membership test on the unqualified table name."""
        return name.lower() in self.table_names()
