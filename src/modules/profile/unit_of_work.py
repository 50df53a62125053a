"""
Per-player unit of work.

Every mutating command runs the same pipeline:

1. acquire the player's lock (one in-flight mutation per player)
2. inside a retrying transaction: load the profile row, run the domain
   mutation, write the row and the audit trail
3. commit
4. release the lock and hand the recorded domain events back to the caller,
   which publishes them

The whole pipeline is shielded from caller cancellation: once a command
started it runs to commit or failure, and the lock is released by the task
that holds it. A transient failure re-runs the whole attempt from a fresh
load, so an attempt is idempotent by construction.

Lock timeouts, lock backend failures and exhausted retries surface as
`PersistenceUnavailableError` (retryable by the caller with the same
idempotency key).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Generic, List, Optional, TypeVar

from src.core.database.retry_policy import DatabaseRetryPolicy, RetriesExhaustedError
from src.core.database.service import DatabaseService
from src.core.exceptions import LockBackendError, LockTimeoutError
from src.core.logging.logger import LogContext, get_logger
from src.domain.models.profile import PlayerProfile, ProgressionRules
from src.modules.profile.repository import ProfileRepository, TransactionLogRepository
from src.modules.shared.exceptions import InvariantViolationError, PersistenceUnavailableError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.locking.player_lock import PlayerLockService
    from src.domain.models.base import DomainEvent

logger = get_logger(__name__)

T = TypeVar("T")

ProfileWork = Callable[["AsyncSession", PlayerProfile], Awaitable[T]]


@dataclass(frozen=True)
class UnitOfWorkResult(Generic[T]):
    value: T
    events: List[DomainEvent] = field(default_factory=list)
    version: int = 0
    created: bool = False


class PlayerUnitOfWork:
    """
    Runs profile mutations and reads with locking, retries and auditing.

    Parameters
    ----------
    rules : ProgressionRules
        Balance tables used to rebuild profiles
    locks : PlayerLockService
        Per-player mutual exclusion
    retry_policy : DatabaseRetryPolicy, optional
        Defaults to the configured policy
    """

    def __init__(
        self,
        rules: ProgressionRules,
        locks: PlayerLockService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        self.rules = rules
        self._locks = locks
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()
        self.profiles = ProfileRepository(logger)
        self.audit = TransactionLogRepository(logger)

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        player_id: str,
        operation: str,
        work: ProfileWork[T],
    ) -> UnitOfWorkResult[T]:
        """
        Run `work` against the player's locked profile and commit.

        Domain exceptions raised by `work` roll the transaction back and
        propagate unchanged.
        """
        task = asyncio.ensure_future(self._locked(player_id, operation, work))
        return await asyncio.shield(task)

    async def _locked(
        self, player_id: str, operation: str, work: ProfileWork[T]
    ) -> UnitOfWorkResult[T]:
        start = time.perf_counter()
        with LogContext(player_id=player_id, operation=operation):
            try:
                async with self._locks.acquire(player_id, operation=operation):
                    result = await self._retry.execute(
                        lambda: self._attempt(player_id, operation, work),
                        operation_name=operation,
                        context={"player_id": player_id},
                    )
            except (LockTimeoutError, LockBackendError) as exc:
                raise PersistenceUnavailableError(operation, 0, cause=exc.error_code) from exc
            except RetriesExhaustedError as exc:
                raise PersistenceUnavailableError(
                    operation, exc.attempts, cause=type(exc.last_error).__name__
                ) from exc
            except InvariantViolationError as exc:
                logger.critical(
                    "Invariant violation; operation halted",
                    extra={
                        "player_id": player_id,
                        "invariant": exc.invariant,
                        "details": exc.details,
                    },
                )
                raise

        logger.debug(
            "Unit of work committed",
            extra={
                "player_id": player_id,
                "operation": operation,
                "event_count": len(result.events),
                "profile_version": result.version,
                "duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
            },
        )
        return result

    async def _attempt(
        self, player_id: str, operation: str, work: ProfileWork[T]
    ) -> UnitOfWorkResult[T]:
        async with DatabaseService.get_transaction() as session:
            profile, created = await self.profiles.load_or_create(session, player_id, self.rules)
            value = await work(session, profile)
            events = profile.clear_domain_events()
            await self.profiles.save(session, profile)
            self.audit.append_events(session, player_id, events, context=operation)
        return UnitOfWorkResult(value=value, events=events, version=profile.version, created=created)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def read(self, player_id: str, operation: str = "read_profile") -> PlayerProfile:
        """
        Load a profile without locking; unknown players get an unsaved
        default profile.
        """

        async def attempt() -> PlayerProfile:
            async with DatabaseService.get_session() as session:
                profile = await self.profiles.load(session, player_id, self.rules)
            return profile if profile is not None else PlayerProfile.new(player_id, self.rules)

        try:
            return await self._retry.execute(
                attempt, operation_name=operation, context={"player_id": player_id}
            )
        except RetriesExhaustedError as exc:
            raise PersistenceUnavailableError(
                operation, exc.attempts, cause=type(exc.last_error).__name__
            ) from exc
        except InvariantViolationError as exc:
            logger.critical(
                "Invariant violation while reading profile",
                extra={"player_id": player_id, "invariant": exc.invariant},
            )
            raise
