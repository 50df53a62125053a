"""
In-process database metrics.

Counters for engine lifecycle, health checks, transactions and retries.
Values are exposed through ``DatabaseMetrics.snapshot()`` for health
endpoints and are cheap enough to update on every transaction.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict

from src.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _DatabaseCounters:
    engine_initializations: int = 0
    engine_initialization_failures: int = 0
    engine_shutdowns: int = 0
    health_checks: int = 0
    health_check_failures: int = 0
    last_health_check_ms: float = 0.0
    transactions_started: int = 0
    transactions_committed: int = 0
    transactions_rolled_back: int = 0
    total_commit_ms: float = 0.0
    retry_attempts: int = 0
    retry_give_ups: int = 0
    rollback_errors: Counter = field(default_factory=Counter)
    retries_by_operation: Counter = field(default_factory=Counter)


class DatabaseMetrics:
    """Classmethod facade over a single set of counters."""

    _counters: _DatabaseCounters = _DatabaseCounters()

    @classmethod
    def reset(cls) -> None:
        cls._counters = _DatabaseCounters()

    @classmethod
    def record_engine_initialized(cls, *, url_scheme: str, pool_class: str) -> None:
        cls._counters.engine_initializations += 1
        logger.debug(
            "Database engine initialized",
            extra={"url_scheme": url_scheme, "pool_class": pool_class},
        )

    @classmethod
    def record_engine_initialization_failed(cls) -> None:
        cls._counters.engine_initialization_failures += 1

    @classmethod
    def record_engine_shutdown(cls) -> None:
        cls._counters.engine_shutdowns += 1

    @classmethod
    def record_health_check(cls, *, success: bool, duration_ms: float) -> None:
        cls._counters.health_checks += 1
        cls._counters.last_health_check_ms = duration_ms
        if not success:
            cls._counters.health_check_failures += 1

    @classmethod
    def record_transaction_started(cls) -> None:
        cls._counters.transactions_started += 1

    @classmethod
    def record_transaction_committed(cls, *, duration_ms: float) -> None:
        cls._counters.transactions_committed += 1
        cls._counters.total_commit_ms += duration_ms

    @classmethod
    def record_transaction_rolled_back(cls, *, error_type: str) -> None:
        cls._counters.transactions_rolled_back += 1
        cls._counters.rollback_errors[error_type] += 1

    @classmethod
    def record_retry_attempt(cls, *, operation: str, will_retry: bool) -> None:
        cls._counters.retry_attempts += 1
        if will_retry:
            cls._counters.retries_by_operation[operation] += 1

    @classmethod
    def record_retry_give_up(cls, *, operation: str, error_type: str) -> None:
        cls._counters.retry_give_ups += 1
        logger.debug(
            "Retry give-up recorded",
            extra={"db_operation": operation, "error_type": error_type},
        )

    @classmethod
    def snapshot(cls) -> Dict[str, Any]:
        c = cls._counters
        committed = c.transactions_committed
        return {
            "engine_initializations": c.engine_initializations,
            "engine_initialization_failures": c.engine_initialization_failures,
            "engine_shutdowns": c.engine_shutdowns,
            "health_checks": c.health_checks,
            "health_check_failures": c.health_check_failures,
            "last_health_check_ms": round(c.last_health_check_ms, 3),
            "transactions_started": c.transactions_started,
            "transactions_committed": committed,
            "transactions_rolled_back": c.transactions_rolled_back,
            "avg_commit_ms": round(c.total_commit_ms / committed, 3) if committed else 0.0,
            "retry_attempts": c.retry_attempts,
            "retry_give_ups": c.retry_give_ups,
            "rollback_errors": dict(c.rollback_errors),
            "retries_by_operation": dict(c.retries_by_operation),
        }
