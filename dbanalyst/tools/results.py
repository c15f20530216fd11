"""Structured results returned by the builtin tools."""

from typing import Any

from pydantic import BaseModel, Field

from dbanalyst.errors import ErrorCode
from dbanalyst.query.analysis import Comparison, Ranking, RankSummary
from dbanalyst.query.schema import ColumnInfo, TableInfo, TableStats


class ToolResult(BaseModel):
    """Common envelope: every tool reports success and a readable message."""

    success: bool
    message: str
    error_code: ErrorCode | None = Field(None, description="Set when success is false")


class AggregateSummary(BaseModel):
    total_records: int
    calculation_time_ms: float
    metric_applied: str
    aggregated_value: float | int | str | None = Field(
        None, description="Scalar result of an ungrouped single-row aggregate"
    )


class AggregateResult(ToolResult):
    results: list[dict[str, Any]] = Field(default_factory=list)
    summary: AggregateSummary
    query: str | None = None


class CompareResult(ToolResult):
    comparison: Comparison | None = None
    queries: list[str] = Field(default_factory=list)


class RankResult(ToolResult):
    rankings: list[Ranking] = Field(default_factory=list)
    summary: RankSummary | None = None
    query: str | None = None


class ListTablesResult(ToolResult):
    tables: list[TableInfo] = Field(default_factory=list)


class TableSchemaResult(ToolResult):
    table_name: str
    columns: list[ColumnInfo] = Field(default_factory=list)


class RunQueryResult(ToolResult):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    columns: list[str] = Field(default_factory=list)
    query: str | None = None


class TableStatsDetail(BaseModel):
    table_name: str
    row_count: int
    sample_data: list[dict[str, Any]] = Field(default_factory=list)


class TableStatsResult(ToolResult):
    stats: TableStatsDetail | None = None


class DatabaseOverviewResult(ToolResult):
    tables: list[TableStats] = Field(default_factory=list)
    total_tables: int = 0
    total_rows: int = 0
