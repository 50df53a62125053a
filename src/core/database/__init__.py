"""
Database subsystem.

Provides async SQLAlchemy engine, session management, circuit breaker,
retry policy and metrics. Also exports ORM base classes and mixins for
model definitions.
"""

from src.core.database.base import Base, IdMixin, TimestampMixin, UInt64, utcnow
from src.core.database.circuit_breaker import CircuitBreaker, CircuitState
from src.core.database.metrics import DatabaseMetrics
from src.core.database.retry_policy import (
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
    RetriesExhaustedError,
)
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UInt64",
    "utcnow",
    # Main service
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    # Resilience
    "CircuitBreaker",
    "CircuitState",
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    "RetriesExhaustedError",
    # Metrics
    "DatabaseMetrics",
]
