"""
Circuit breaker in front of the profile store.

After ``CIRCUIT_BREAKER_FAILURE_THRESHOLD`` consecutive driver failures the
breaker opens and every new transaction fails fast with
`CircuitBreakerOpenError`, which the retry policy treats as transient. Once
``CIRCUIT_BREAKER_RECOVERY_TIMEOUT`` seconds have passed since the last
failure, a single probe is let through: success closes the breaker, failure
opens it again.

A rejected game command (insufficient funds, full deck) rolls back over a
working connection, so `DatabaseService` records it as a success.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from src.core.config.config import Config
from src.core.exceptions import CircuitBreakerOpenError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerMetrics:
    state: CircuitState
    consecutive_failures: int
    failure_count: int
    success_count: int
    rejected_requests: int


class CircuitBreaker:
    """
    Transitions happen under an ``asyncio.Lock``.

    ``clock`` defaults to ``time.monotonic``; tests pass a fake to step past
    the recovery timeout without sleeping.
    """

    def __init__(
        self,
        name: str = "profile_store",
        failure_threshold: Optional[int] = None,
        recovery_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._threshold = max(1, failure_threshold or int(Config.CIRCUIT_BREAKER_FAILURE_THRESHOLD))
        self._recovery_timeout = (
            float(Config.CIRCUIT_BREAKER_RECOVERY_TIMEOUT)
            if recovery_timeout_seconds is None
            else recovery_timeout_seconds
        )
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False

        self._failures = 0
        self._successes = 0
        self._rejected = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    def _retry_after(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._recovery_timeout - (self._clock() - self._opened_at))

    async def ensure_closed(self) -> None:
        """
        Admit one transaction or refuse it.

        Raises
        ------
        CircuitBreakerOpenError
            The breaker is open, or half-open with its probe already running
        """
        async with self._lock:
            if self._state is CircuitState.OPEN and self._retry_after() == 0.0:
                self._move_to(CircuitState.HALF_OPEN)

            if self._state is CircuitState.CLOSED:
                return
            if self._state is CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                return

            self._rejected += 1
            retry_after = self._retry_after()

        logger.warning(
            "Profile store transaction refused by circuit breaker",
            extra={"breaker": self.name, "state": self._state.value, "retry_after": retry_after},
        )
        raise CircuitBreakerOpenError(
            service=self.name,
            consecutive_failures=self._consecutive_failures,
            retry_after=retry_after,
        )

    async def record_success(self) -> None:
        async with self._lock:
            self._successes += 1
            self._consecutive_failures = 0
            if self._state is not CircuitState.CLOSED:
                self._move_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failures += 1
            self._consecutive_failures += 1
            tripped = self._state is CircuitState.HALF_OPEN or (
                self._consecutive_failures >= self._threshold
            )
            if tripped:
                self._opened_at = self._clock()
                self._move_to(CircuitState.OPEN)

    async def reset(self) -> None:
        async with self._lock:
            self._consecutive_failures = 0
            self._move_to(CircuitState.CLOSED)

    def _move_to(self, state: CircuitState) -> None:
        # Caller holds the lock
        previous, self._state = self._state, state
        self._probe_in_flight = False
        if state is CircuitState.CLOSED:
            self._opened_at = None
        if previous is state:
            return

        log = logger.error if state is CircuitState.OPEN else logger.info
        log(
            "Circuit breaker %s -> %s",
            previous.value,
            state.value,
            extra={"breaker": self.name, "consecutive_failures": self._consecutive_failures},
        )

    def get_metrics(self) -> CircuitBreakerMetrics:
        return CircuitBreakerMetrics(
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            failure_count=self._failures,
            success_count=self._successes,
            rejected_requests=self._rejected,
        )
