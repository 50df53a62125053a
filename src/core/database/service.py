"""
Profile store engine and sessions.

One `AsyncEngine` per process, created by `initialize()` and shared by every
unit of work. Writes go through `get_transaction()`: commit when the block
exits cleanly, rollback on any exception. Only driver-level failures
(`OperationalError`, `DBAPIError`) count against the circuit breaker; a
unit of work rejected by a game rule is recorded as a healthy round-trip.

SQLite (embedded servers, tests) runs on `NullPool` so every session opens
its own connection; server databases get a sized `QueuePool`.

>>> await DatabaseService.initialize("sqlite+aiosqlite:///progression.db")
>>> await DatabaseService.create_tables()
>>> async with DatabaseService.get_transaction() as session:
...     session.add(record)
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, QueuePool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.database.circuit_breaker import CircuitBreaker
from src.core.database.metrics import DatabaseMetrics
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """The engine could not be created from the configured URL."""


class DatabaseNotInitializedError(RuntimeError):
    """A session was requested before `DatabaseService.initialize()`."""


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": bool(Config.DATABASE_ECHO)}
    if url.startswith("sqlite") or Config.is_testing():
        options["poolclass"] = NullPool
        return options

    options.update(
        poolclass=QueuePool,
        pool_size=int(Config.DATABASE_POOL_SIZE),
        max_overflow=int(Config.DATABASE_MAX_OVERFLOW),
        pool_recycle=int(Config.DATABASE_POOL_RECYCLE),
        pool_timeout=int(Config.DATABASE_POOL_TIMEOUT),
        pool_pre_ping=True,
    )
    return options


class DatabaseService:
    """Classmethod singleton owning the engine, session factory and breaker."""

    _engine: Optional[AsyncEngine] = None
    _sessions: Optional[async_sessionmaker[AsyncSession]] = None
    _breaker: Optional[CircuitBreaker] = None
    _lifecycle_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Create the engine; a second call while initialized is a no-op.

        Parameters
        ----------
        database_url : Optional[str]
            Overrides ``Config.DATABASE_URL``; tests pass a temp-file SQLite URL

        Raises
        ------
        DatabaseInitializationError
            The URL is missing or the driver rejects it
        """
        async with cls._lifecycle_lock:
            if cls._engine is not None:
                return

            url = database_url or Config.DATABASE_URL
            if not isinstance(url, str) or not url:
                DatabaseMetrics.record_engine_initialization_failed()
                raise DatabaseInitializationError("DATABASE_URL is not configured")

            options = _engine_options(url)
            scheme = url.split(":", 1)[0]
            pool_name = options["poolclass"].__name__

            try:
                engine = create_async_engine(url, **options)
            except Exception as exc:
                DatabaseMetrics.record_engine_initialization_failed()
                logger.error(
                    "Could not create database engine",
                    extra={"url_scheme": scheme, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._engine = engine
            cls._sessions = async_sessionmaker(
                bind=engine, class_=AsyncSession, expire_on_commit=False
            )
            cls._breaker = CircuitBreaker(name="profile_store")

            DatabaseMetrics.record_engine_initialized(url_scheme=scheme, pool_class=pool_name)
            logger.info(
                "Profile store connected",
                extra={"url_scheme": scheme, "pool_class": pool_name},
            )

    @classmethod
    async def create_tables(cls) -> None:
        """Create missing tables for every model registered on `Base`."""
        engine = cls._require_engine()

        # Importing the package registers the progression tables on Base.metadata
        import src.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Profile store schema ensured",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._lifecycle_lock:
            engine = cls._engine
            cls._engine = None
            cls._sessions = None
            cls._breaker = None
            if engine is None:
                return

            await engine.dispose()
            DatabaseMetrics.record_engine_shutdown()
            logger.info("Profile store disconnected")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._sessions is None:
            raise DatabaseNotInitializedError(
                "DatabaseService.initialize() must run before the profile store is used"
            )
        return cls._engine

    # ========================================================================
    # SESSIONS
    # ========================================================================

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session for queries; nothing is committed."""
        cls._require_engine()
        assert cls._sessions is not None

        async with cls._sessions() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in one atomic transaction.

        Raises
        ------
        DatabaseNotInitializedError
            `initialize()` has not run
        CircuitBreakerOpenError
            Recent driver failures opened the breaker; retry later
        """
        cls._require_engine()
        assert cls._sessions is not None and cls._breaker is not None
        breaker = cls._breaker

        await breaker.ensure_closed()
        started = time.perf_counter()

        async with cls._sessions() as session:
            DatabaseMetrics.record_transaction_started()
            try:
                yield session
                await session.commit()
            except BaseException as exc:
                await session.rollback()
                DatabaseMetrics.record_transaction_rolled_back(error_type=type(exc).__name__)
                if isinstance(exc, (OperationalError, DBAPIError)):
                    await breaker.record_failure()
                    logger.error(
                        "Profile store transaction failed",
                        extra={"error_type": type(exc).__name__, "error": str(exc)},
                    )
                else:
                    # The store answered; the unit of work itself was refused
                    await breaker.record_success()
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000.0
            await breaker.record_success()
            DatabaseMetrics.record_transaction_committed(duration_ms=elapsed_ms)

    # ========================================================================
    # HEALTH
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """``SELECT 1`` round-trip; False instead of raising."""
        if cls._engine is None:
            DatabaseMetrics.record_health_check(success=False, duration_ms=0.0)
            return False

        started = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Profile store health check failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            healthy = False
        else:
            healthy = True

        DatabaseMetrics.record_health_check(
            success=healthy, duration_ms=(time.perf_counter() - started) * 1000.0
        )
        return healthy

    @classmethod
    def get_circuit_breaker_metrics(cls) -> dict[str, Any]:
        if cls._breaker is None:
            return {"state": "not_initialized"}

        snapshot = cls._breaker.get_metrics()
        return {
            "state": snapshot.state.value,
            "consecutive_failures": snapshot.consecutive_failures,
            "failure_count": snapshot.failure_count,
            "success_count": snapshot.success_count,
            "rejected_requests": snapshot.rejected_requests,
        }
