"""
Query Log

One structured entry per tool invocation, success or failure. Entries are
kept in a bounded in-process ring, written to the application log, and
handed to any registered sinks. Sinks are fire-and-forget: a failing sink
is logged and never affects the tool result.

Usage:
    query_log = QueryLog()
    query_log.add_sink(lambda entry: metrics.push(entry.model_dump()))

    stopwatch = Stopwatch()
    ...
    query_log.record(
        QueryLogEntry(
            tool_name="calculate_metrics",
            query_text=sql,
            table_name="projects",
            execution_time_ms=stopwatch.elapsed_ms(),
            rows_returned=1,
            success=True,
        )
    )
"""

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

QueryLogSink = Callable[["QueryLogEntry"], None]


class QueryLogEntry(BaseModel):
    """Immutable record of one operation attempt."""

    tool_name: str
    query_text: str | None = None
    table_name: str | None = None
    execution_time_ms: float
    rows_returned: int | None = None
    success: bool
    error_message: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class Stopwatch:
    """Wall-clock timer started on construction."""

    def __init__(self) -> None:
        self._start = time.perf_counter()

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self._start) * 1000, 2)


class QueryLog:
    """Append-only log of query entries with pluggable sinks."""

    def __init__(self, capacity: int = 500, sinks: Iterable[QueryLogSink] | None = None):
        self._entries: deque[QueryLogEntry] = deque(maxlen=capacity)
        self._sinks: list[QueryLogSink] = list(sinks or [])

    def add_sink(self, sink: QueryLogSink) -> None:
        self._sinks.append(sink)

    def record(self, entry: QueryLogEntry) -> None:
        self._entries.append(entry)

        payload = entry.model_dump(mode="json")
        if entry.success:
            logger.info(f"Query log: {entry.tool_name} succeeded", extra={"query_log": payload})
        else:
            logger.warning(
                f"Query log: {entry.tool_name} failed - {entry.error_message}",
                extra={"query_log": payload},
            )

        for sink in self._sinks:
            try:
                sink(entry)
            except Exception as exc:
                logger.warning(
                    "Query log sink failed",
                    extra={"sink": getattr(sink, "__name__", repr(sink)), "error": str(exc)},
                )

    def entries(self) -> list[QueryLogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
