"""
Unit Tests for PlayerUnitOfWork
===============================

Test Coverage
-------------
- Commit path: value, events and creation flag returned to the caller
- Transient failures re-run the whole attempt from a fresh load
- Exhausted retries and lock failures become PersistenceUnavailableError
- Domain rejections propagate unchanged and are not retried
- Invariant violations halt the operation
- Caller cancellation does not interrupt a started command

Testing Strategy
----------------
- DatabaseService transactions and the repositories are mocked
- A real retry policy with millisecond backoff
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.exc import OperationalError

from src.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from src.core.database.service import DatabaseService
from src.core.exceptions import LockTimeoutError
from src.core.locking.player_lock import PlayerLockService
from src.domain.models.ledger import CurrencyKind
from src.domain.models.profile import PlayerProfile
from src.modules.profile.unit_of_work import PlayerUnitOfWork
from src.modules.shared.exceptions import (
    InsufficientFundsError,
    InvariantViolationError,
    PersistenceUnavailableError,
)


def _transient_error() -> OperationalError:
    return OperationalError("UPDATE player_profiles", {}, Exception("database is locked"))


@pytest.fixture
def retry_policy() -> DatabaseRetryPolicy:
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(max_attempts=3, initial_backoff_ms=1, max_backoff_ms=2, jitter_ms=0)
    )


@pytest.fixture
def session(mocker):
    return mocker.MagicMock(name="session")


@pytest.fixture
def patched_database(mocker, session):
    """Route DatabaseService transactions and sessions to a mock session."""

    @asynccontextmanager
    async def fake_transaction():
        yield session

    mocker.patch.object(DatabaseService, "get_transaction", side_effect=fake_transaction)
    mocker.patch.object(DatabaseService, "get_session", side_effect=fake_transaction)
    return session


@pytest.fixture
def unit_of_work(mocker, rules, retry_policy, patched_database):
    uow = PlayerUnitOfWork(rules, PlayerLockService(), retry_policy)
    uow.profiles.load_or_create = mocker.AsyncMock(
        side_effect=lambda session, player_id, rules: (PlayerProfile.new(player_id, rules), True)
    )
    uow.profiles.load = mocker.AsyncMock(return_value=None)
    uow.profiles.save = mocker.AsyncMock()
    uow.audit.append_events = mocker.MagicMock(return_value=[])
    return uow


@pytest.mark.unit
@pytest.mark.services
class TestUnitOfWorkExecute:
    """Test the command pipeline."""

    async def test_commit_returns_value_and_events(self, unit_of_work, session):
        # Arrange
        async def work(db_session, profile):
            assert db_session is session
            return profile.credit(CurrencyKind.SOFT, 250, reason="match_reward")

        # Act
        result = await unit_of_work.execute("p-1", "credit", work)

        # Assert
        assert result.value == 250
        assert result.created is True
        assert [e.event_name for e in result.events] == ["ledger.credited"]
        saved_profile = unit_of_work.profiles.save.await_args.args[1]
        assert saved_profile.get_pending_events() == []
        unit_of_work.audit.append_events.assert_called_once()
        assert unit_of_work.audit.append_events.call_args.kwargs["context"] == "credit"

    async def test_transient_failure_reruns_from_fresh_load(self, unit_of_work):
        # Arrange
        attempts = []

        async def work(db_session, profile):
            attempts.append(profile.ledger.soft)
            profile.credit(CurrencyKind.SOFT, 100, reason="grant")
            if len(attempts) < 3:
                raise _transient_error()
            return profile.ledger.soft

        # Act
        result = await unit_of_work.execute("p-1", "grant_currency", work)

        # Assert
        assert attempts == [0, 0, 0]
        assert result.value == 100
        assert unit_of_work.profiles.load_or_create.await_count == 3
        assert unit_of_work.profiles.save.await_count == 1

    async def test_exhausted_retries_become_persistence_unavailable(self, unit_of_work):
        async def work(db_session, profile):
            raise _transient_error()

        with pytest.raises(PersistenceUnavailableError) as exc_info:
            await unit_of_work.execute("p-1", "claim_season_reward", work)

        error = exc_info.value
        assert error.is_retryable
        assert error.details["attempts"] == 3
        assert error.details["cause"] == "OperationalError"
        unit_of_work.profiles.save.assert_not_awaited()

    async def test_domain_rejection_propagates_without_retry(self, unit_of_work):
        async def work(db_session, profile):
            profile.debit(CurrencyKind.SOFT, 500, reason="upgrade:blaze")

        with pytest.raises(InsufficientFundsError):
            await unit_of_work.execute("p-1", "upgrade_card", work)

        assert unit_of_work.profiles.load_or_create.await_count == 1
        unit_of_work.profiles.save.assert_not_awaited()

    async def test_lock_timeout_becomes_persistence_unavailable(
        self, mocker, rules, retry_policy, patched_database
    ):
        # Arrange
        locks = mocker.MagicMock()
        locks.acquire.side_effect = LockTimeoutError("progression:lock:player:p-1", 5.0)
        uow = PlayerUnitOfWork(rules, locks, retry_policy)
        work = mocker.AsyncMock()

        # Act
        with pytest.raises(PersistenceUnavailableError) as exc_info:
            await uow.execute("p-1", "toggle_deck_slot", work)

        # Assert
        assert exc_info.value.details["attempts"] == 0
        assert exc_info.value.details["cause"] == "LOCK_TIMEOUT"
        work.assert_not_awaited()

    async def test_invariant_violation_halts_and_is_logged(self, unit_of_work, mocker):
        logger = mocker.patch("src.modules.profile.unit_of_work.logger")
        unit_of_work.profiles.load_or_create.side_effect = InvariantViolationError(
            "stored profile is well-formed", {"player_id": "p-1"}
        )

        with pytest.raises(InvariantViolationError):
            await unit_of_work.execute("p-1", "upgrade_card", mocker.AsyncMock())

        logger.critical.assert_called_once()
        assert unit_of_work.profiles.load_or_create.await_count == 1

    async def test_started_command_survives_caller_cancellation(self, unit_of_work):
        # Arrange
        started = asyncio.Event()
        release = asyncio.Event()

        async def work(db_session, profile):
            started.set()
            await release.wait()
            return profile.credit(CurrencyKind.PREMIUM, 98, reason="season:season_1")

        task = asyncio.create_task(unit_of_work.execute("p-1", "claim_season_reward", work))
        await started.wait()

        # Act
        task.cancel()
        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        for _ in range(100):
            if unit_of_work.profiles.save.await_count:
                break
            await asyncio.sleep(0.001)

        # Assert
        unit_of_work.profiles.save.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.services
class TestUnitOfWorkRead:
    """Test unlocked profile reads."""

    async def test_unknown_player_gets_unsaved_default(self, unit_of_work):
        profile = await unit_of_work.read("new-player")

        assert profile.id == "new-player"
        assert profile.deck.to_list() == ["freeze", "reverse", "shrink", "obstacle"]
        unit_of_work.profiles.save.assert_not_awaited()

    async def test_read_retries_then_reports_unavailable(self, unit_of_work):
        unit_of_work.profiles.load.side_effect = _transient_error()

        with pytest.raises(PersistenceUnavailableError):
            await unit_of_work.read("p-1", "get_rank_state")

        assert unit_of_work.profiles.load.await_count == 3
