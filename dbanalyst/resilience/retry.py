"""
Retry and Timeout

Retry-with-backoff and deadline racing for outbound database calls.

The timeout race abandons the wait but never cancels the underlying
operation: a slow query keeps running on the server until its own
statement timeout fires. The abandoned task's outcome is still retrieved
so asyncio does not warn about it.

Usage:
    policy = RetryPolicy(max_attempts=3, initial_delay_ms=500)
    result = await with_retry(lambda: connector.execute(sql), policy)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field

from dbanalyst.errors import AgentError, ErrorCode, ErrorSeverity, normalize_error, should_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[int, BaseException], None]


class RetryPolicy(BaseModel):
    """Backoff parameters for with_retry()."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=10000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    timeout_ms: float | None = Field(default=30000, gt=0)

    def delay_for(self, attempt: int) -> float:
        """Delay in ms to wait after the given (1-based) failed attempt."""
        return min(
            self.initial_delay_ms * self.backoff_multiplier ** (attempt - 1),
            self.max_delay_ms,
        )


def _retrieve_abandoned(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(
            "Abandoned operation finished with an error",
            extra={"error": str(exc), "error_type": type(exc).__name__},
        )


async def with_timeout(operation: Awaitable[T], timeout_ms: float | None) -> T:
    """
    Race an awaitable against a deadline.

    Args:
        operation: Awaitable to wait for
        timeout_ms: Deadline in milliseconds (None waits indefinitely)

    Returns:
        The operation's result

    Raises:
        AgentError: TIMEOUT_ERROR (retryable) when the deadline expires first
    """
    task = asyncio.ensure_future(operation)
    if timeout_ms is None:
        return await task

    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_ms / 1000)
    except TimeoutError:
        if task.done():
            # The operation raised TimeoutError itself
            raise
        task.add_done_callback(_retrieve_abandoned)
        raise AgentError(
            ErrorCode.TIMEOUT_ERROR,
            f"Operation timed out after {timeout_ms:g}ms",
            user_message=(
                "The operation took too long to complete. "
                "Please try again with a more specific query."
            ),
            severity=ErrorSeverity.ERROR,
            retryable=True,
            context={"timeout_ms": timeout_ms},
        ) from None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    on_retry: OnRetry | None = None,
) -> T:
    """
    Run an operation with per-attempt timeout and exponential backoff.

    Args:
        operation: Zero-argument factory producing a fresh awaitable per attempt
        policy: Retry policy (defaults to RetryPolicy())
        on_retry: Called with (attempt, error) before each backoff wait

    Returns:
        The first successful result

    Raises:
        The last error, unchanged, once it is non-retryable or attempts run out
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await with_timeout(operation(), policy.timeout_ms)
        except Exception as exc:
            if not should_retry(normalize_error(exc)):
                logger.debug(
                    "Non-retryable failure, giving up",
                    extra={"attempt": attempt, "error": str(exc)},
                )
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"Operation failed after {attempt} attempts",
                    extra={"attempts": attempt, "error": str(exc)},
                )
                raise

            delay_ms = policy.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed. Retrying in {delay_ms:g}ms",
                extra={"attempt": attempt, "delay_ms": delay_ms, "error": str(exc)},
            )
            if on_retry:
                on_retry(attempt, exc)
            await asyncio.sleep(delay_ms / 1000)

    raise RuntimeError("retry loop exhausted")  # pragma: no cover - max_attempts >= 1
