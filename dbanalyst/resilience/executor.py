"""Connector wrapper applying the retry, timeout and circuit breaker policy."""

import logging
from collections.abc import Sequence
from typing import Any

from dbanalyst.connectors.base import BaseConnector, QueryResult
from dbanalyst.errors import AgentError, normalize_error
from dbanalyst.resilience.circuit_breaker import CircuitBreaker
from dbanalyst.resilience.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)


class ResilientExecutor:
    """
    SQL executor used by the query builder and the tools.

    Each attempt passes through the circuit breaker, so every attempt's
    outcome is recorded on the breaker. A rejected attempt is not retried.
    Raw connector failures are normalized before the retry decision, which
    means callers always receive an AgentError.
    """

    def __init__(
        self,
        connector: BaseConnector,
        breaker: CircuitBreaker | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.connector = connector
        self.breaker = breaker or CircuitBreaker()
        self.policy = policy or RetryPolicy()

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Run one query under the resilience policy."""
        bound = list(params) if params else None

        async def attempt() -> QueryResult:
            try:
                if not self.connector.is_connected:
                    await self.connector.connect()
                return await self.connector.execute(query, bound)
            except AgentError:
                raise
            except Exception as exc:
                raise normalize_error(exc, {"query": query[:200]}) from exc

        def log_retry(attempt_number: int, error: BaseException) -> None:
            logger.info(
                "Retrying database call",
                extra={
                    "attempt": attempt_number,
                    "error": str(error),
                    "circuit_state": self.breaker.state.value,
                },
            )

        return await with_retry(
            lambda: self.breaker.execute(attempt),
            self.policy,
            on_retry=log_retry,
        )

    async def execute_templated(self, query: str, params: Sequence[Any]) -> QueryResult:
        """Run a catalog lookup written with $n placeholders."""
        return await self.execute(query, params)
