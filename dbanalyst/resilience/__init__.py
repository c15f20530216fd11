"""Retry, timeout and circuit breaker policy for outbound database calls."""

from dbanalyst.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerState, CircuitState
from dbanalyst.resilience.executor import ResilientExecutor
from dbanalyst.resilience.retry import RetryPolicy, with_retry, with_timeout

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitState",
    "ResilientExecutor",
    "RetryPolicy",
    "with_retry",
    "with_timeout",
]
