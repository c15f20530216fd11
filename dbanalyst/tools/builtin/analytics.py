"""
Analytics tools: aggregate metrics, two-value comparison and ranking.

Each tool validates its request, builds parameterized SQL through the
QueryBuilder, runs it on the runtime's resilient executor and records one
query log entry. Failures never escape: they come back as a result with
success=False and the normalized user-facing message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal

from dbanalyst.query.analysis import (
    compare_values,
    extract_aggregated_value,
    format_number,
    rank_rows,
)
from dbanalyst.query.builder import BuiltQuery
from dbanalyst.query.models import AggregateRequest, CompareRequest, Metric, RankRequest
from dbanalyst.querylog import Stopwatch
from dbanalyst.tools.base import ToolCategory, ToolContext, tool
from dbanalyst.tools.builtin.common import get_runtime, log_failure, log_success, tool_error
from dbanalyst.tools.results import AggregateResult, AggregateSummary, CompareResult, RankResult

logger = logging.getLogger(__name__)


@tool(
    name="calculate_metrics",
    description=(
        "Calculate aggregated metrics (count, sum, avg, min, max, distinct) on any table. "
        "Supports grouping and filtering."
    ),
    category=ToolCategory.ANALYTICS,
)
async def calculate_metrics(
    table: str,
    metric: Metric,
    column: str | None = None,
    group_by: str | None = None,
    filters: list[dict[str, Any]] | None = None,
    order_direction: Literal["asc", "desc"] | None = None,
    limit: int | None = None,
    ctx: ToolContext | None = None,
) -> AggregateResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    query: BuiltQuery | None = None

    try:
        request = AggregateRequest(
            table=table,
            metric=metric,
            column=column,
            group_by=group_by,
            filters=filters,
            order_direction=order_direction,
            limit=runtime.bounded_limit(limit),
        )
        query = await runtime.query_builder().build_aggregate(request)
        result = await runtime.executor.execute(query.sql, query.params)
    except Exception as exc:
        error = tool_error(exc)
        elapsed = log_failure(
            runtime,
            "calculate_metrics",
            stopwatch,
            error,
            query_text=query.render() if query else None,
            table_name=table,
        )
        return AggregateResult(
            success=False,
            message=error.user_message,
            error_code=error.code,
            summary=AggregateSummary(
                total_records=0, calculation_time_ms=elapsed, metric_applied=str(metric)
            ),
        )

    aggregated_value = extract_aggregated_value(result.rows, grouped=request.group_by is not None)
    elapsed = log_success(
        runtime,
        "calculate_metrics",
        stopwatch,
        query_text=query.render(),
        table_name=request.table,
        rows_returned=len(result.rows),
    )

    if aggregated_value is not None:
        shown = aggregated_value if isinstance(aggregated_value, str) else format_number(aggregated_value)
        message = f"Calculated {request.metric} = {shown} from {request.table}"
    else:
        message = f"Calculated {request.metric} across {len(result.rows)} groups from {request.table}"

    return AggregateResult(
        success=True,
        message=message,
        results=result.rows,
        summary=AggregateSummary(
            total_records=len(result.rows),
            calculation_time_ms=elapsed,
            metric_applied=request.metric.value,
            aggregated_value=aggregated_value,
        ),
        query=query.render(),
    )


@tool(
    name="compare_data",
    description=(
        "Compare a metric between two values of a column (two periods, regions or entities). "
        "Calculates the difference, percentage change and trend."
    ),
    category=ToolCategory.ANALYTICS,
)
async def compare_data(
    table: str,
    metric: Metric,
    compare_by: str,
    value1: str | int | float | bool | None,
    value2: str | int | float | bool | None,
    column: str | None = None,
    filters: list[dict[str, Any]] | None = None,
    ctx: ToolContext | None = None,
) -> CompareResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    queries: tuple[BuiltQuery, BuiltQuery] | None = None

    try:
        request = CompareRequest(
            table=table,
            metric=metric,
            column=column,
            compare_by=compare_by,
            value1=value1,
            value2=value2,
            filters=filters,
        )
        queries = await runtime.query_builder().build_compare(request)
        first, second = await asyncio.gather(
            *(runtime.executor.execute(query.sql, query.params) for query in queries)
        )
        comparison = compare_values(
            request.metric.value,
            extract_aggregated_value(first.rows, grouped=False),
            extract_aggregated_value(second.rows, grouped=False),
        )
    except Exception as exc:
        error = tool_error(exc)
        log_failure(
            runtime,
            "compare_data",
            stopwatch,
            error,
            query_text="; ".join(query.render() for query in queries) if queries else None,
            table_name=table,
        )
        return CompareResult(success=False, message=error.user_message, error_code=error.code)

    rendered = [query.render() for query in queries]
    log_success(
        runtime,
        "compare_data",
        stopwatch,
        query_text="; ".join(rendered),
        table_name=request.table,
        rows_returned=len(first.rows) + len(second.rows),
    )
    return CompareResult(
        success=True,
        message=comparison.insight,
        comparison=comparison,
        queries=rendered,
    )


@tool(
    name="rank_entities",
    description=(
        "Rank entities (technicians, regions, projects, ...) by an aggregated metric. "
        "Returns the top or bottom N with each entity's share of the returned total."
    ),
    category=ToolCategory.ANALYTICS,
)
async def rank_entities(
    table: str,
    metric: Metric,
    rank_by: str,
    column: str | None = None,
    direction: Literal["top", "bottom"] = "top",
    limit: int | None = None,
    filters: list[dict[str, Any]] | None = None,
    ctx: ToolContext | None = None,
) -> RankResult:
    stopwatch = Stopwatch()
    runtime = get_runtime(ctx)
    query: BuiltQuery | None = None

    try:
        request = RankRequest(
            table=table,
            metric=metric,
            column=column,
            rank_by=rank_by,
            direction=direction,
            limit=runtime.bounded_limit(limit, default=runtime.default_rank_limit),
            filters=filters,
        )
        query = await runtime.query_builder().build_rank(request)
        result = await runtime.executor.execute(query.sql, query.params)
        rankings, summary = rank_rows(result.rows)
    except Exception as exc:
        error = tool_error(exc)
        log_failure(
            runtime,
            "rank_entities",
            stopwatch,
            error,
            query_text=query.render() if query else None,
            table_name=table,
        )
        return RankResult(success=False, message=error.user_message, error_code=error.code)

    log_success(
        runtime,
        "rank_entities",
        stopwatch,
        query_text=query.render(),
        table_name=request.table,
        rows_returned=len(result.rows),
    )
    return RankResult(
        success=True,
        message=(
            f"Ranked {request.direction} {len(rankings)} entities by {request.metric} "
            f"from {request.table}"
        ),
        rankings=rankings,
        summary=summary,
        query=query.render(),
    )
