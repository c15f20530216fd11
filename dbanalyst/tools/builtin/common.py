"""Shared plumbing for the builtin tools: runtime lookup, error mapping, query logging."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from dbanalyst.errors import AgentError, format_for_log, normalize_error, request_error
from dbanalyst.querylog import QueryLogEntry, Stopwatch
from dbanalyst.runtime import AnalyticsRuntime
from dbanalyst.tools.base import ToolContext

logger = logging.getLogger(__name__)


def get_runtime(ctx: ToolContext | None) -> AnalyticsRuntime:
    """
    Raises:
        ValueError: If the context carries no runtime
    """
    runtime = ctx.metadata.get("runtime") if ctx else None
    if not isinstance(runtime, AnalyticsRuntime):
        raise ValueError("No analytics runtime on the tool context (metadata['runtime']).")
    return runtime


def tool_error(exc: BaseException) -> AgentError:
    if isinstance(exc, ValidationError):
        return request_error(exc)
    return normalize_error(exc)


def log_success(
    runtime: AnalyticsRuntime,
    tool_name: str,
    stopwatch: Stopwatch,
    *,
    query_text: str | None = None,
    table_name: str | None = None,
    rows_returned: int | None = None,
) -> float:
    """Record a successful invocation and return its elapsed time in ms."""
    elapsed = stopwatch.elapsed_ms()
    runtime.query_log.record(
        QueryLogEntry(
            tool_name=tool_name,
            query_text=query_text,
            table_name=table_name,
            execution_time_ms=elapsed,
            rows_returned=rows_returned,
            success=True,
        )
    )
    return elapsed


def log_failure(
    runtime: AnalyticsRuntime,
    tool_name: str,
    stopwatch: Stopwatch,
    error: AgentError,
    *,
    query_text: str | None = None,
    table_name: str | None = None,
) -> float:
    """Record a failed invocation and return its elapsed time in ms."""
    elapsed = stopwatch.elapsed_ms()
    logger.debug(f"{tool_name} failed:\n{format_for_log(error)}")
    runtime.query_log.record(
        QueryLogEntry(
            tool_name=tool_name,
            query_text=query_text,
            table_name=table_name,
            execution_time_ms=elapsed,
            success=False,
            error_message=error.message,
        )
    )
    return elapsed
