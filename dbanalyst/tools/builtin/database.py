"""Built-in database discovery and ad-hoc query tools."""

from __future__ import annotations

from dbanalyst.query.readonly import ensure_read_only
from dbanalyst.query.sanitizer import quote_identifier
from dbanalyst.query.schema import LIST_COLUMNS_SQL, LIST_TABLES_SQL, TABLE_OVERVIEW_SQL
from dbanalyst.querylog import Stopwatch
from dbanalyst.tools.base import ToolCategory, ToolContext, tool
from dbanalyst.tools.builtin.common import get_runtime, log_failure, log_success, tool_error
from dbanalyst.tools.results import (
    DatabaseOverviewResult,
    ListTablesResult,
    RunQueryResult,
    TableSchemaResult,
    TableStatsDetail,
    TableStatsResult,
)


def _sql_text(sql: str) -> str:
    return " ".join(sql.split())


@tool(
    name="list_tables",
    description="List tables and views in the active schema.",
    category=ToolCategory.DATABASE,
)
async def list_tables(ctx: ToolContext | None = None) -> ListTablesResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    try:
        tables = await runtime.schema_validator().describe_tables()
    except Exception as exc:
        error = tool_error(exc)
        log_failure(runtime, "list_tables", stopwatch, error, query_text=_sql_text(LIST_TABLES_SQL))
        return ListTablesResult(success=False, message=error.user_message, error_code=error.code)

    log_success(
        runtime,
        "list_tables",
        stopwatch,
        query_text=_sql_text(LIST_TABLES_SQL),
        rows_returned=len(tables),
    )
    return ListTablesResult(
        success=True,
        message=f"Found {len(tables)} tables in the database",
        tables=tables,
    )


@tool(
    name="get_table_schema",
    description="Get the columns (name, type, nullability, default) of a table.",
    category=ToolCategory.DATABASE,
)
async def get_table_schema(table_name: str, ctx: ToolContext | None = None) -> TableSchemaResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    try:
        validator = runtime.schema_validator()
        await validator.require_table(table_name)
        columns = await validator.describe_table(table_name)
    except Exception as exc:
        error = tool_error(exc)
        log_failure(
            runtime,
            "get_table_schema",
            stopwatch,
            error,
            query_text=_sql_text(LIST_COLUMNS_SQL),
            table_name=table_name,
        )
        return TableSchemaResult(
            success=False,
            message=error.user_message,
            error_code=error.code,
            table_name=table_name,
        )

    log_success(
        runtime,
        "get_table_schema",
        stopwatch,
        query_text=_sql_text(LIST_COLUMNS_SQL),
        table_name=table_name,
        rows_returned=len(columns),
    )
    return TableSchemaResult(
        success=True,
        message=f"Found {len(columns)} columns in table '{table_name}'",
        table_name=table_name,
        columns=columns,
    )


@tool(
    name="run_query",
    description=(
        "Execute a read-only SQL query (a single SELECT). "
        "A LIMIT is appended when the query has none."
    ),
    category=ToolCategory.DATABASE,
)
async def run_query(
    query: str, limit: int | None = None, ctx: ToolContext | None = None
) -> RunQueryResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    final_query: str | None = None
    try:
        final_query = ensure_read_only(query, runtime.bounded_limit(limit))
        result = await runtime.executor.execute(final_query)
    except Exception as exc:
        error = tool_error(exc)
        log_failure(runtime, "run_query", stopwatch, error, query_text=final_query or query)
        return RunQueryResult(
            success=False,
            message=error.user_message,
            error_code=error.code,
            query=final_query,
        )

    log_success(
        runtime,
        "run_query",
        stopwatch,
        query_text=final_query,
        rows_returned=len(result.rows),
    )
    return RunQueryResult(
        success=True,
        message=f"Query executed successfully. Returned {len(result.rows)} rows.",
        rows=result.rows,
        row_count=len(result.rows),
        columns=result.columns,
        query=final_query,
    )


@tool(
    name="get_table_stats",
    description="Get the row count and a few sample rows of a table.",
    category=ToolCategory.DATABASE,
)
async def get_table_stats(
    table_name: str, sample_size: int = 5, ctx: ToolContext | None = None
) -> TableStatsResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    count_sql = sample_sql = None
    try:
        await runtime.schema_validator().require_table(table_name)
        quoted = quote_identifier(table_name)
        count_sql = f"SELECT COUNT(*) AS count FROM {quoted}"
        sample_sql = f"SELECT * FROM {quoted} LIMIT {runtime.bounded_limit(sample_size)}"
        count_result = await runtime.executor.execute(count_sql)
        sample_result = await runtime.executor.execute(sample_sql)
        row_count = int(count_result.rows[0]["count"]) if count_result.rows else 0
    except Exception as exc:
        error = tool_error(exc)
        log_failure(
            runtime,
            "get_table_stats",
            stopwatch,
            error,
            query_text=count_sql,
            table_name=table_name,
        )
        return TableStatsResult(success=False, message=error.user_message, error_code=error.code)

    log_success(
        runtime,
        "get_table_stats",
        stopwatch,
        query_text=f"{count_sql}; {sample_sql}",
        table_name=table_name,
        rows_returned=len(sample_result.rows),
    )
    return TableStatsResult(
        success=True,
        message=f"Retrieved statistics for table '{table_name}': {row_count} total rows",
        stats=TableStatsDetail(
            table_name=table_name,
            row_count=row_count,
            sample_data=sample_result.rows,
        ),
    )


@tool(
    name="get_database_overview",
    description="Overview of every table in the active schema with its estimated row count.",
    category=ToolCategory.DATABASE,
)
async def get_database_overview(ctx: ToolContext | None = None) -> DatabaseOverviewResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    try:
        tables = await runtime.schema_validator().table_overview()
    except Exception as exc:
        error = tool_error(exc)
        log_failure(
            runtime,
            "get_database_overview",
            stopwatch,
            error,
            query_text=_sql_text(TABLE_OVERVIEW_SQL),
        )
        return DatabaseOverviewResult(
            success=False, message=error.user_message, error_code=error.code
        )

    total_rows = sum(table.row_count for table in tables)
    log_success(
        runtime,
        "get_database_overview",
        stopwatch,
        query_text=_sql_text(TABLE_OVERVIEW_SQL),
        rows_returned=len(tables),
    )
    return DatabaseOverviewResult(
        success=True,
        message=f"Database contains {len(tables)} tables with a total of {total_rows} rows",
        tables=tables,
        total_tables=len(tables),
        total_rows=total_rows,
    )
