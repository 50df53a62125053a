"""
Retry transient profile store failures.

The retried callable is a whole unit of work: it opens its own transaction,
reloads the profile and reapplies the command, so a retry never replays a
half-applied change. Driver errors (``OperationalError``, ``DBAPIError``)
and an open circuit breaker are transient; anything else, game rule
rejections in particular, propagates on the first attempt.

Backoff before attempt ``n + 1`` is
``min(initial * 2**(n - 1), max) + uniform jitter`` milliseconds, with the
limits taken from ``DATABASE_RETRY_*``.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from src.core.config.config import Config
from src.core.database.metrics import DatabaseMetrics
from src.core.exceptions import CircuitBreakerOpenError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    OperationalError,
    DBAPIError,
    CircuitBreakerOpenError,
)


@dataclass(frozen=True)
class DatabaseRetryConfig:
    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int = 25
    retriable_exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS

    @classmethod
    def from_config(cls) -> DatabaseRetryConfig:
        return cls(
            max_attempts=max(1, int(Config.DATABASE_RETRY_MAX_ATTEMPTS)),
            initial_backoff_ms=int(Config.DATABASE_RETRY_INITIAL_BACKOFF_MS),
            max_backoff_ms=int(Config.DATABASE_RETRY_MAX_BACKOFF_MS),
        )


class RetriesExhaustedError(Exception):
    """Every attempt failed transiently; the last error is ``__cause__``."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException) -> None:
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation_name} gave up after {attempts} attempt(s): {type(last_error).__name__}"
        )


class DatabaseRetryPolicy:
    """
    >>> policy = DatabaseRetryPolicy.from_config()
    >>> await policy.execute(attempt, operation_name="season.claim_reward")
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> DatabaseRetryPolicy:
        return cls(DatabaseRetryConfig.from_config())

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def is_retriable(self, exc: BaseException) -> bool:
        return isinstance(exc, self._config.retriable_exceptions)

    def compute_backoff_ms(self, attempt: int) -> int:
        """Sleep before the attempt after `attempt` (1-indexed)."""
        cfg = self._config
        delay = min(cfg.initial_backoff_ms * 2 ** max(attempt - 1, 0), cfg.max_backoff_ms)
        if cfg.jitter_ms > 0:
            delay += random.randint(0, cfg.jitter_ms)
        return delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Await ``operation()`` until it succeeds or attempts run out.

        Raises
        ------
        RetriesExhaustedError
            The last permitted attempt also failed transiently
        Exception
            A non-transient error, unchanged
        """
        log_extra = {**(context or {}), "db_operation": operation_name}

        for attempt in range(1, self._config.max_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if not self.is_retriable(exc):
                    raise
                error_type = type(exc).__name__
                last_attempt = attempt == self._config.max_attempts
                DatabaseMetrics.record_retry_attempt(
                    operation=operation_name, will_retry=not last_attempt
                )

                if last_attempt:
                    DatabaseMetrics.record_retry_give_up(
                        operation=operation_name, error_type=error_type
                    )
                    logger.error(
                        "Profile store retries exhausted",
                        extra={**log_extra, "attempt": attempt, "error_type": error_type},
                    )
                    raise RetriesExhaustedError(operation_name, attempt, exc) from exc

                backoff_ms = self.compute_backoff_ms(attempt)
                logger.warning(
                    "Transient profile store failure, retrying",
                    extra={
                        **log_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "backoff_ms": backoff_ms,
                    },
                )
                await asyncio.sleep(backoff_ms / 1000.0)

        raise AssertionError("unreachable: max_attempts is at least 1")
