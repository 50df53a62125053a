"""
Pytest Configuration and Fixtures for the Progression Engine Tests
==================================================================

Purpose
-------
Centralized test fixtures and configuration for the progression test suite.
Provides reusable fixtures for the database, services, domain models and
mocks.

Responsibilities
----------------
- Test environment variables (testing environment, quiet logging)
- A fresh aiosqlite database file per test for integration tests
- Balance rules loaded from the real YAML tables
- A controllable clock for season calendar tests
- EventBus and ConfigManager mocks for unit tests

Architecture Notes
------------------
- Unit tests use domain models and mocks (fast, isolated)
- Integration tests run the real services against SQLite
- Database fixtures provide a clean slate per test
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator, List, Optional

import pytest
import pytest_asyncio

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.locking.player_lock import PlayerLockService
from src.core.logging.logger import get_logger
from src.domain.models.profile import PlayerProfile, ProgressionRules
from src.modules.progression import ProgressionService

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Inside season_1 (2026-02-21 + 30 days)
SEASON_OPEN_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SEASON_ENDED_AT = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"
    os.environ["LOG_JSON"] = "false"
    os.environ["LOG_COLORS"] = "false"
    os.environ["REDIS_URL"] = ""
    os.environ["CONFIG_DIR"] = str(PROJECT_ROOT / "config")
    os.environ["DATABASE_RETRY_INITIAL_BACKOFF_MS"] = "1"
    os.environ["DATABASE_RETRY_MAX_BACKOFF_MS"] = "5"
    Config.load()


@pytest.fixture(autouse=True)
def reset_config_manager() -> Generator[None, None, None]:
    """Fresh balance tables and no overrides for every test."""
    ConfigManager.clear_cache()
    ConfigManager._config_dir = Config.CONFIG_DIR
    yield
    ConfigManager.clear_cache()


# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Callable clock that tests can move."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock() -> FakeClock:
    """Clock positioned inside the configured current season."""
    return FakeClock(SEASON_OPEN_AT)


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def rules() -> ProgressionRules:
    return ProgressionRules.from_config()


@pytest.fixture
def profile(rules: ProgressionRules) -> PlayerProfile:
    """New player holding only the starter skills."""
    return PlayerProfile.new("player-1", rules)


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'progression.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[str, None]:
    """
    Initialize DatabaseService against a new SQLite file with all tables.

    Scope: function (clean slate per test)
    """
    await DatabaseService.shutdown()
    await DatabaseService.initialize(database_url)
    await DatabaseService.create_tables()
    yield database_url
    await DatabaseService.shutdown()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(enable_metrics=False)


@pytest.fixture
def published_events(event_bus: EventBus) -> List[tuple]:
    """Every event published on `event_bus`, as (event_name, payload)."""
    captured: List[tuple] = []

    def make_listener(name: str):
        async def listener(payload):
            captured.append((name, payload))

        return listener

    names = [
        "ledger.credited",
        "ledger.debited",
        "card.copies_added",
        "card.upgraded",
        "deck.changed",
        "rank.changed",
        "rank.tier_changed",
        "rank.prestige_available",
        "rank.prestige_completed",
        "season.peak_updated",
        "season.closed",
        "season.reward_granted",
        "purchase.granted",
    ]
    for name in names:
        event_bus.subscribe(name, make_listener(name), identifier=f"test-capture-{name}")
    return captured


@pytest_asyncio.fixture
async def progression(
    database: str, event_bus: EventBus, clock: FakeClock, rules: ProgressionRules
) -> AsyncGenerator[ProgressionService, None]:
    """Facade wired to the test database, a local lock service and the fake clock."""
    service = ProgressionService(rules, PlayerLockService(), event_bus, clock=clock)
    yield service
    await service.close()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to mock event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager for unit tests.

    Scope: function
    Uses: Unit tests that need to mock configuration
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def assert_domain_event_emitted(domain_model, event_name: str) -> bool:
    """
    Assert that a domain model emitted a specific event.

    Usage:
        profile.apply_match_result(550)
        assert assert_domain_event_emitted(profile, "rank.tier_changed")
    """
    events = domain_model.get_pending_events()
    return any(event.event_name == event_name for event in events)


def get_domain_event_payload(domain_model, event_name: str) -> Optional[dict]:
    """
    Get the payload of a specific domain event.

    Usage:
        profile.apply_match_result(550)
        payload = get_domain_event_payload(profile, "rank.tier_changed")
        assert payload["new_tier"] == "Silver"
    """
    events = domain_model.get_pending_events()
    for event in events:
        if event.event_name == event_name:
            return event.payload
    return None
