"""
Circuit Breaker

Stops forwarding calls to a failing dependency for a cooldown window, then
probes recovery before letting traffic through again.

States:
    CLOSED     every call passes; consecutive failures are counted
    OPEN       every call is rejected until the cooldown has elapsed
    HALF_OPEN  one probe at a time is admitted; enough consecutive
               successes close the circuit, any failure reopens it

One breaker guards one resource. It is constructed by whoever composes the
executor and passed to the call sites; there is no module-level instance.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

from pydantic import BaseModel, ConfigDict

from dbanalyst.errors import AgentError, ErrorCode, ErrorSeverity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(StrEnum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerState(BaseModel):
    """Point-in-time view of a breaker."""

    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: float | None

    model_config = ConfigDict(frozen=True)


class CircuitBreaker:
    """
    Three-state circuit breaker.

    Args:
        failure_threshold: Consecutive failures that trip CLOSED -> OPEN
        success_threshold: Consecutive HALF_OPEN successes that close the circuit
        cooldown_ms: Time since the last failure before a probe is admitted
        clock: Monotonic clock in seconds (injectable for tests)
        name: Guarded resource, used in logs and error context
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        cooldown_ms: float = 60000,
        clock: Callable[[], float] = time.monotonic,
        name: str = "database",
    ):
        if failure_threshold < 1 or success_threshold < 1:
            raise ValueError("Circuit breaker thresholds must be >= 1")
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.cooldown_ms = cooldown_ms
        self.name = name
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    def snapshot(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            last_failure_time=self._last_failure_time,
        )

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            f"Circuit '{self.name}' {old_state} -> {new_state}",
            extra={
                "breaker": self.name,
                "from_state": old_state.value,
                "to_state": new_state.value,
                "failure_count": self._failure_count,
            },
        )

    def _cooldown_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        elapsed_ms = (self._clock() - self._last_failure_time) * 1000
        return elapsed_ms >= self.cooldown_ms

    def can_execute(self) -> bool:
        """Admission check; moves OPEN -> HALF_OPEN once the cooldown has elapsed."""
        if self._state is CircuitState.CLOSED:
            return True

        if self._state is CircuitState.OPEN:
            if not self._cooldown_elapsed():
                return False
            self._success_count = 0
            self._transition(CircuitState.HALF_OPEN)
            return True

        return not self._probe_in_flight

    def record_success(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._failure_count = 0
                self._success_count = 0
                self._transition(CircuitState.CLOSED)
        elif self._state is CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._last_failure_time = self._clock()
        self._success_count = 0
        self._failure_count += 1

        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif (
            self._state is CircuitState.CLOSED
            and self._failure_count >= self.failure_threshold
        ):
            self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        self._probe_in_flight = False
        if self._state is not CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)

    def _rejection(self) -> AgentError:
        return AgentError(
            ErrorCode.RATE_LIMIT_ERROR,
            f"Circuit breaker '{self.name}' is {self._state}",
            user_message=(
                "The service is temporarily unavailable due to repeated failures. "
                "Please try again in a moment."
            ),
            severity=ErrorSeverity.WARNING,
            retryable=False,
            context={"breaker": self.name, "circuit_state": self._state.value},
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation under breaker protection.

        Raises:
            AgentError: RATE_LIMIT_ERROR without invoking the operation when
                the circuit rejects the call
        """
        if not self.can_execute():
            raise self._rejection()

        probe = self._state is CircuitState.HALF_OPEN
        if probe:
            self._probe_in_flight = True
        try:
            result = await operation()
        except Exception:
            self.record_failure()
            raise
        else:
            self.record_success()
            return result
        finally:
            if probe:
                self._probe_in_flight = False
