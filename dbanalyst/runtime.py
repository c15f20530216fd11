"""
Analytics Runtime

Composition root for the tools: one connector, one circuit breaker guarding
it, the resilient executor wrapping both, and the query log. Build it once
at process start and hand it to tool invocations through
``ToolContext.metadata["runtime"]``.

Usage:
    async with AnalyticsRuntime.from_settings() as runtime:
        ctx = ToolContext(user_id="cli", correlation_id="1", metadata={"runtime": runtime})
        await ToolExecutor().execute("calculate_metrics", {...}, ctx)
"""

import logging

from dbanalyst.config import Settings, get_settings
from dbanalyst.connectors.base import BaseConnector
from dbanalyst.connectors.postgres import PostgresConnector
from dbanalyst.errors import invalid_input
from dbanalyst.query.builder import QueryBuilder
from dbanalyst.query.sanitizer import quote_identifier
from dbanalyst.query.schema import SchemaValidator
from dbanalyst.querylog import QueryLog
from dbanalyst.resilience.circuit_breaker import CircuitBreaker
from dbanalyst.resilience.executor import ResilientExecutor
from dbanalyst.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)


class AnalyticsRuntime:
    def __init__(
        self,
        connector: BaseConnector,
        breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        query_log: QueryLog | None = None,
        schema_name: str = "public",
        default_query_limit: int = 100,
        default_rank_limit: int = 10,
        max_query_limit: int = 1000,
    ):
        self.connector = connector
        self.breaker = breaker or CircuitBreaker()
        self.executor = ResilientExecutor(connector, self.breaker, retry_policy)
        self.query_log = query_log or QueryLog()
        self.schema_name = schema_name
        self.default_query_limit = default_query_limit
        self.default_rank_limit = default_rank_limit
        self.max_query_limit = max_query_limit

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AnalyticsRuntime":
        """
        Raises:
            ValueError: If DATABASE_URL is not configured
        """
        settings = settings or get_settings()
        if settings.database.url is None:
            raise ValueError("DATABASE_URL is not configured.")

        connector = PostgresConnector.from_url(
            str(settings.database.url),
            pool_size=settings.database.pool_size,
            timeout=settings.database.statement_timeout,
            server_settings={"search_path": quote_identifier(settings.database.schema_name)},
        )
        return cls(
            connector=connector,
            breaker=settings.resilience.build_circuit_breaker(),
            retry_policy=settings.resilience.retry_policy(),
            query_log=QueryLog(capacity=settings.tools.query_log_capacity),
            schema_name=settings.database.schema_name,
            default_query_limit=settings.tools.default_query_limit,
            default_rank_limit=settings.tools.default_rank_limit,
            max_query_limit=settings.tools.max_query_limit,
        )

    def schema_validator(self) -> SchemaValidator:
        """Fresh catalog view; each tool call resolves identifiers once."""
        return SchemaValidator(self.executor, self.schema_name)

    def query_builder(self, validator: SchemaValidator | None = None) -> QueryBuilder:
        return QueryBuilder(validator or self.schema_validator())

    def bounded_limit(self, limit: int | None, default: int | None = None) -> int:
        """
        Row cap for a tool call, clamped to max_query_limit.

        Raises:
            AgentError: INVALID_INPUT when limit is not a positive integer
        """
        value = limit if limit is not None else (default or self.default_query_limit)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise invalid_input(f"limit must be a positive integer, got {value!r}.", limit=value)
        return min(value, self.max_query_limit)

    async def start(self) -> None:
        await self.connector.connect()
        logger.info(
            "Analytics runtime started",
            extra={"schema": self.schema_name, "circuit_state": self.breaker.state.value},
        )

    async def close(self) -> None:
        await self.connector.close()

    async def __aenter__(self) -> "AnalyticsRuntime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
