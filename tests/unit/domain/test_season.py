"""
Unit Tests for Season Settlement
================================

Test Coverage
-------------
- Gem reward formula (base, tier bonus, cap)
- Peak watermark and close semantics
- One-time claim
- Season calendar and countdown formatting
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.config.manager import ConfigManager
from src.domain.models.season import SeasonInfo, SeasonRecord, SeasonRewardRules, gem_reward
from src.modules.shared.exceptions import InvalidOperationError, InvariantViolationError
from tests.conftest import SEASON_ENDED_AT, SEASON_OPEN_AT


@pytest.fixture
def reward_rules() -> SeasonRewardRules:
    return SeasonRewardRules.from_config()


# ============================================================================
# REWARD FORMULA
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestGemReward:
    """Test the season gem reward."""

    @pytest.mark.parametrize(
        "peak, expected",
        [
            (0, 0),
            (99, 0),
            (550, 5),
            (1999, 19),
            (2000, 30),
            (3499, 44),
            (3500, 60),
            (4499, 69),
            (4500, 95),
            (4820, 98),
        ],
    )
    def test_reward_table(self, reward_rules, peak, expected):
        assert reward_rules.gem_reward(peak) == expected

    def test_reward_is_capped(self, reward_rules):
        assert reward_rules.gem_reward(1_000_000) == 500

    def test_module_function_uses_default_rules(self):
        assert gem_reward(4820) == 98

    def test_reward_never_decreases_with_peak(self, reward_rules):
        rewards = [reward_rules.gem_reward(peak) for peak in range(0, 60_000, 50)]

        assert rewards == sorted(rewards)

    def test_bonus_table_is_read_from_config(self):
        ConfigManager.set_override(
            "season.reward.tier_bonus", [{"min_peak": 100, "gems": 7}]
        )

        rules = SeasonRewardRules.from_config()

        assert rules.gem_reward(150) == 8


# ============================================================================
# SEASON RECORD
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSeasonRecord:
    """Test the per-player season record."""

    def test_peak_only_increases(self):
        record = SeasonRecord("season_1")

        assert record.record_trophies(800)
        assert not record.record_trophies(300)
        assert record.peak_trophies == 800

    def test_closed_record_ignores_trophies(self, reward_rules):
        # Arrange
        record = SeasonRecord("season_1", peak_trophies=4820)
        record.close("Legend", 0, reward_rules)

        # Act
        moved = record.record_trophies(9000)

        # Assert
        assert not moved
        assert record.peak_trophies == 4820
        assert record.gem_reward == 98

    def test_close_is_idempotent(self, reward_rules):
        record = SeasonRecord("season_1", peak_trophies=2100)

        assert record.close("Diamond", 1, reward_rules)
        assert not record.close("Gold", 2, reward_rules)
        assert record.final_tier == "Diamond"
        assert record.final_prestige == 1

    def test_settled_reward_survives_table_changes(self, reward_rules):
        record = SeasonRecord("season_1", peak_trophies=4820)
        record.settle_reward(reward_rules)

        settled = record.settle_reward(SeasonRewardRules(divisor=1, max_gems=10_000))

        assert settled == 98

    def test_claim_happens_once(self, reward_rules):
        # Arrange
        record = SeasonRecord("season_1", peak_trophies=550)
        record.close("Silver", 0, reward_rules)

        # Act
        record.mark_claimed()

        # Assert
        assert record.claimed
        with pytest.raises(InvalidOperationError):
            record.mark_claimed()

    def test_claim_before_settlement_is_an_invariant_violation(self):
        with pytest.raises(InvariantViolationError):
            SeasonRecord("season_1").mark_claimed()

    def test_stored_claim_without_reward_is_rejected(self):
        with pytest.raises(InvariantViolationError):
            SeasonRecord.from_dict("season_1", {"peak_trophies": 10, "claimed": True})

    def test_stored_record_round_trip(self, reward_rules):
        record = SeasonRecord("season_1", peak_trophies=3600)
        record.close("Diamond", 2, reward_rules)

        restored = SeasonRecord.from_dict("season_1", record.to_dict())

        assert restored == record


# ============================================================================
# CALENDAR
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSeasonInfo:
    """Test the configured season calendar."""

    def test_from_config(self):
        info = SeasonInfo.from_config()

        assert info.season_id == "season_1"
        assert info.name == "Neon Vault"
        assert info.start_date == datetime(2026, 2, 21, tzinfo=timezone.utc)
        assert info.end_date == datetime(2026, 3, 23, tzinfo=timezone.utc)

    def test_activity_window(self):
        info = SeasonInfo.from_config()

        assert info.is_active(SEASON_OPEN_AT)
        assert not info.is_active(SEASON_ENDED_AT)
        assert info.has_ended(SEASON_ENDED_AT)
        assert not info.is_active(info.start_date - timedelta(seconds=1))
        assert not info.is_active(info.end_date)

    @pytest.mark.parametrize(
        "remaining, expected",
        [
            (timedelta(days=3, hours=4, minutes=10), "3d 4h"),
            (timedelta(hours=5, minutes=30), "5h 30m"),
            (timedelta(minutes=42), "42m"),
            (timedelta(0), "Season ended"),
        ],
    )
    def test_format_time_remaining(self, remaining, expected):
        info = SeasonInfo.from_config()

        assert info.format_time_remaining(info.end_date - remaining) == expected

    def test_time_remaining_never_negative(self):
        info = SeasonInfo.from_config()

        assert info.time_remaining(SEASON_ENDED_AT) == timedelta(0)

    def test_to_dict(self):
        data = SeasonInfo.from_config().to_dict(SEASON_OPEN_AT)

        assert data["season_id"] == "season_1"
        assert data["is_active"] is True
        assert data["time_remaining"] == "21d 12h"
