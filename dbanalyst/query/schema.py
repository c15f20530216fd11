"""
Catalog Lookups

Table and column discovery backed by information_schema, scoped to one
schema. The query builder uses SchemaValidator as its identifier
allow-list: a table or column name is only ever spliced into SQL text after
it has been found here.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel, Field

from dbanalyst.errors import invalid_column, invalid_table
from dbanalyst.resilience.executor import ResilientExecutor

logger = logging.getLogger(__name__)

LIST_TABLES_SQL = """
    SELECT table_name, table_schema
    FROM information_schema.tables
    WHERE table_schema = $1
    AND table_type IN ('BASE TABLE', 'VIEW')
    ORDER BY table_name
"""

LIST_COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = $1 AND table_name = $2
    ORDER BY ordinal_position
"""

TABLE_OVERVIEW_SQL = """
    SELECT relname AS table_name, n_live_tup AS row_count
    FROM pg_stat_user_tables
    WHERE schemaname = $1
    ORDER BY n_live_tup DESC
"""


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Column data type")
    is_nullable: bool = Field(..., description="Whether column can be NULL")
    default_value: str | None = Field(None, description="Default value if any")


class TableInfo(BaseModel):
    """A table or view visible in the active schema."""

    schema_name: str = Field(..., description="Schema name")
    table_name: str = Field(..., description="Table name")


class TableStats(BaseModel):
    """Live row estimate for one table."""

    table_name: str
    row_count: int


class SchemaValidator:
    """
    Identifier allow-list resolved from catalog metadata.

    Lookups are cached for the lifetime of the instance; call refresh() to
    pick up schema changes. Failures of the catalog queries themselves
    propagate unchanged.
    """

    def __init__(self, executor: ResilientExecutor, schema_name: str = "public"):
        self.executor = executor
        self.schema_name = schema_name
        self._tables: set[str] | None = None
        self._columns: dict[str, list[ColumnInfo]] = {}

    def refresh(self) -> None:
        self._tables = None
        self._columns.clear()

    async def describe_tables(self) -> list[TableInfo]:
        result = await self.executor.execute_templated(LIST_TABLES_SQL, [self.schema_name])
        tables = [
            TableInfo(schema_name=row["table_schema"], table_name=row["table_name"])
            for row in result.rows
        ]
        self._tables = {table.table_name for table in tables}
        return tables

    async def list_tables(self) -> set[str]:
        if self._tables is None:
            await self.describe_tables()
        return set(self._tables or ())

    async def describe_table(self, table: str) -> list[ColumnInfo]:
        """Columns of a table in ordinal order (empty when the table is unknown)."""
        if table not in self._columns:
            result = await self.executor.execute_templated(
                LIST_COLUMNS_SQL, [self.schema_name, table]
            )
            self._columns[table] = [
                ColumnInfo(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    is_nullable=row["is_nullable"] == "YES",
                    default_value=row["column_default"],
                )
                for row in result.rows
            ]
        return list(self._columns[table])

    async def list_columns(self, table: str) -> set[str]:
        return {column.name for column in await self.describe_table(table)}

    async def table_overview(self) -> list[TableStats]:
        result = await self.executor.execute_templated(TABLE_OVERVIEW_SQL, [self.schema_name])
        return [
            TableStats(table_name=row["table_name"], row_count=int(row["row_count"] or 0))
            for row in result.rows
        ]

    async def require_table(self, table: str) -> None:
        """
        Raises:
            AgentError: INVALID_TABLE when the table is not in the schema
        """
        if table not in await self.list_tables():
            logger.info(
                "Rejected unknown table",
                extra={"table": table, "schema": self.schema_name},
            )
            raise invalid_table(table)

    async def require_columns(self, table: str, columns: Iterable[str | None]) -> None:
        """
        Check every given column (None entries are skipped) exists on table.

        Raises:
            AgentError: INVALID_COLUMN for the first missing column
        """
        available = await self.list_columns(table)
        for column in columns:
            if column is not None and column not in available:
                logger.info(
                    "Rejected unknown column",
                    extra={"table": table, "column": column, "schema": self.schema_name},
                )
                raise invalid_column(column, table)
