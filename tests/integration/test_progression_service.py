"""
Integration Tests for ProgressionService
========================================

Test Coverage
-------------
- Match results, tier promotion and season peak tracking
- Card upgrades with exact rejection reasons and no partial state
- Deck toggles on a full starter deck
- Season settlement across a service restart and concurrent claims
- Rank prestige and its history table
- First-contact profiles and read-only queries
- Events published after commit

Testing Strategy
----------------
- Real services against a fresh SQLite file per test
- Season calendar driven by a fake clock
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.locking.player_lock import PlayerLockService
from src.database.models import PlayerProfileRow, TransactionLog, TransactionType
from src.domain.models.cards import CardRarity
from src.modules.progression import ProgressionService
from src.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import SEASON_ENDED_AT

PLAYER = "player-1"


async def _count_rows(model, *criteria) -> int:
    async with DatabaseService.get_session() as session:
        stmt = select(func.count()).select_from(model)
        for criterion in criteria:
            stmt = stmt.where(criterion)
        return (await session.execute(stmt)).scalar_one()


async def _seed_coins(service: ProgressionService, amount: int, tx: str) -> None:
    result = await service.grant_currency(PLAYER, "coins", amount, tx)
    assert result, result.reason


# ============================================================================
# RANK
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestMatchResults:
    """Test ReportMatchResult end to end."""

    async def test_win_from_zero_promotes_to_silver(self, progression, published_events):
        # Act
        snapshot = await progression.report_match_result(PLAYER, 550)

        # Assert
        assert snapshot.trophies == 550
        assert snapshot.tier.name == "Silver"
        stored = await progression.get_rank_state(PLAYER)
        assert stored == snapshot
        tier_events = [p for name, p in published_events if name == "rank.tier_changed"]
        assert tier_events == [
            {"player_id": PLAYER, "old_tier": "Rookie", "new_tier": "Silver", "promoted": True}
        ]

    async def test_losses_clamp_at_zero(self, progression):
        await progression.report_match_result(PLAYER, 30)

        snapshot = await progression.report_match_result(PLAYER, -100)

        assert snapshot.trophies == 0
        assert snapshot.tier.name == "Rookie"

    async def test_open_season_tracks_peak(self, progression):
        await progression.report_match_result(PLAYER, 1_200)
        await progression.report_match_result(PLAYER, -300)

        record = await progression.get_season_record(PLAYER, "season_1")

        assert record.peak_trophies == 1_200
        assert not record.closed

    async def test_matches_after_season_end_do_not_move_peak(self, progression, clock):
        await progression.report_match_result(PLAYER, 800)
        clock.set(SEASON_ENDED_AT)

        await progression.report_match_result(PLAYER, 900)

        record = await progression.get_season_record(PLAYER, "season_1")
        assert record.peak_trophies == 800
        assert (await progression.get_rank_state(PLAYER)).trophies == 1_700

    async def test_non_integer_delta_raises(self, progression):
        with pytest.raises(ValidationError):
            await progression.report_match_result(PLAYER, 12.5)

        assert await _count_rows(PlayerProfileRow) == 0


# ============================================================================
# CARD UPGRADES
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestCardUpgrades:
    """Test UpgradeCard end to end."""

    async def test_rare_card_with_four_copies_is_short_by_six(self, progression):
        # Arrange
        await progression.add_card_copies(PLAYER, "blaze", 9)
        await _seed_coins(progression, 200, "seed-1")
        first = await progression.upgrade_card(PLAYER, "blaze")
        assert first.value.to_rarity is CardRarity.RARE

        # Act
        result = await progression.upgrade_card(PLAYER, "blaze")

        # Assert
        assert not result
        assert result.error_code == "INSUFFICIENT_COPIES"
        assert result.reason == "blaze needs 6 more copies (10 required, you have 4)."
        collection = {r.card_id: r for r in await progression.get_card_collection(PLAYER)}
        assert collection["blaze"].copies == 4
        assert collection["blaze"].rarity is CardRarity.RARE

    async def test_short_on_coins_reports_exact_shortfall(self, progression):
        # Arrange
        await progression.add_card_copies(PLAYER, "blaze", 15)
        await _seed_coins(progression, 500, "seed-1")
        await progression.upgrade_card(PLAYER, "blaze")

        # Act
        result = await progression.upgrade_card(PLAYER, "blaze")

        # Assert
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.details["shortfall"] == 200
        assert result.reason == "You need 200 more coins (500 required, you have 300)."
        assert await progression.get_balances(PLAYER) == {"coins": 300, "gems": 0}
        blaze = [r for r in await progression.get_card_collection(PLAYER) if r.card_id == "blaze"]
        assert blaze[0].copies == 10

    async def test_rejected_upgrade_writes_no_audit_entry(self, progression):
        await progression.add_card_copies(PLAYER, "freeze", 5)

        result = await progression.upgrade_card(PLAYER, "freeze")

        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert await _count_rows(
            TransactionLog,
            TransactionLog.transaction_type == TransactionType.CARD_UPGRADE.value,
        ) == 0

    async def test_successful_upgrade_is_audited_and_published(
        self, progression, published_events
    ):
        await progression.add_card_copies(PLAYER, "freeze", 5)
        await _seed_coins(progression, 150, "seed-1")

        result = await progression.upgrade_card(PLAYER, "freeze")

        assert result.reason == "freeze upgraded to Rare"
        assert result.value.coins_spent == 150
        assert [name for name, _ in published_events][-2:] == ["ledger.debited", "card.upgraded"]
        assert await _count_rows(
            TransactionLog,
            TransactionLog.player_id == PLAYER,
            TransactionLog.transaction_type == TransactionType.CARD_UPGRADE.value,
        ) == 1

    async def test_lock_release_failure_reports_committed_upgrade(
        self, database, event_bus, published_events, clock, rules, mocker
    ):
        # Arrange
        redis_client = mocker.MagicMock()
        redis_client.set = mocker.AsyncMock(return_value=True)
        redis_client.eval = mocker.AsyncMock(side_effect=RedisConnectionError("reset by peer"))
        redis_client.aclose = mocker.AsyncMock()
        service = ProgressionService(
            rules, PlayerLockService(redis_client=redis_client), event_bus, clock=clock
        )
        await service.add_card_copies(PLAYER, "blaze", 10)
        await service.grant_currency(PLAYER, "coins", 1_000, "seed-1")

        # Act
        result = await service.upgrade_card(PLAYER, "blaze")

        # Assert
        assert result, result.reason
        assert result.value.to_rarity is CardRarity.RARE
        assert await service.get_balances(PLAYER) == {"coins": 800, "gems": 0}
        assert [name for name, _ in published_events][-2:] == ["ledger.debited", "card.upgraded"]
        await service.close()

    async def test_unknown_card_is_rejected(self, progression):
        result = await progression.add_card_copies(PLAYER, "dragon", 1)

        assert result.error_code == "CARD_NOT_FOUND"
        assert result.reason == "Card not found: dragon"


# ============================================================================
# DECK
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDeckToggle:
    """Test ToggleDeckSlot end to end."""

    async def test_new_player_deck_is_full(self, progression):
        # Arrange
        await progression.add_card_copies(PLAYER, "shield", 1)

        # Act
        result = await progression.toggle_deck_slot(PLAYER, "shield")

        # Assert
        assert result.error_code == "DECK_FULL"
        assert result.reason == "Your active deck already holds 4 skills. Remove one first."
        assert await progression.get_active_deck(PLAYER) == [
            "freeze",
            "reverse",
            "shrink",
            "obstacle",
        ]

    async def test_swap_keeps_slot_position(self, progression):
        await progression.add_card_copies(PLAYER, "shield", 1)

        removed = await progression.toggle_deck_slot(PLAYER, "shrink")
        added = await progression.toggle_deck_slot(PLAYER, "shield")

        assert removed.value == {"added": False, "slot": 2}
        assert removed.reason == "shrink removed from slot 3"
        assert added.value == {"added": True, "slot": 2}
        assert await progression.get_active_deck(PLAYER) == [
            "freeze",
            "reverse",
            "shield",
            "obstacle",
        ]

    async def test_character_cannot_join_deck(self, progression):
        await progression.add_card_copies(PLAYER, "blaze", 1)
        await progression.toggle_deck_slot(PLAYER, "freeze")

        result = await progression.toggle_deck_slot(PLAYER, "blaze")

        assert result.error_code == "VALIDATION_ERROR"
        assert "blaze" not in await progression.get_active_deck(PLAYER)


# ============================================================================
# SEASON SETTLEMENT
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSeasonSettlement:
    """Test ClaimSeasonReward end to end."""

    async def test_peak_4820_pays_98_gems(self, progression, clock):
        # Arrange
        await progression.report_match_result(PLAYER, 4_820)
        clock.set(SEASON_ENDED_AT)

        # Act
        result = await progression.claim_season_reward(PLAYER, "season_1")

        # Assert
        assert result
        assert result.value.granted == 98
        assert not result.value.already_claimed
        assert result.reason == "Claimed 98 gems for season_1"
        assert await progression.get_balances(PLAYER) == {"coins": 0, "gems": 98}
        record = await progression.get_season_record(PLAYER, "season_1")
        assert record.claimed and record.closed
        assert record.gem_reward == 98

    async def test_claim_survives_restart_and_credits_once(
        self, progression, clock, database, rules
    ):
        # Arrange
        await progression.report_match_result(PLAYER, 4_820)
        clock.set(SEASON_ENDED_AT)
        first = await progression.claim_season_reward(PLAYER, "season_1")
        await progression.close()
        await DatabaseService.shutdown()
        await DatabaseService.initialize(database)
        restarted = ProgressionService(
            rules, PlayerLockService(), EventBus(enable_metrics=False), clock=clock
        )

        # Act
        second = await restarted.claim_season_reward(PLAYER, "season_1")

        # Assert
        assert first.value.granted == second.value.granted == 98
        assert second.value.already_claimed
        assert second.reason == "Reward for season_1 already claimed (98 gems)"
        assert await restarted.get_balances(PLAYER) == {"coins": 0, "gems": 98}
        await restarted.close()

    async def test_concurrent_claims_credit_once(self, progression, clock):
        # Arrange
        await progression.report_match_result(PLAYER, 4_820)
        clock.set(SEASON_ENDED_AT)

        # Act
        results = await asyncio.gather(
            *(progression.claim_season_reward(PLAYER, "season_1") for _ in range(5))
        )

        # Assert
        assert all(results)
        assert {r.value.granted for r in results} == {98}
        assert sum(not r.value.already_claimed for r in results) == 1
        assert (await progression.get_balances(PLAYER))["gems"] == 98
        assert await _count_rows(
            TransactionLog,
            TransactionLog.transaction_type == TransactionType.SEASON_REWARD.value,
        ) == 1

    async def test_open_season_claim_is_rejected(self, progression):
        await progression.report_match_result(PLAYER, 700)

        result = await progression.claim_season_reward(PLAYER, "season_1")

        assert result.error_code == "INVALID_OPERATION"
        assert result.reason == "Season season_1 is still in progress"
        assert (await progression.get_balances(PLAYER))["gems"] == 0

    async def test_explicit_close_allows_claim(self, progression, clock):
        await progression.report_match_result(PLAYER, 2_000)
        clock.set(SEASON_ENDED_AT)

        closed = await progression.close_season(PLAYER, "season_1")
        claim = await progression.claim_season_reward(PLAYER, "season_1")

        assert closed.value.final_tier == "Diamond"
        assert closed.reason == "season_1 closed with 2,000 peak trophies"
        assert claim.value.granted == 30

    async def test_open_season_close_is_rejected(self, progression):
        # Arrange
        await progression.report_match_result(PLAYER, 600)

        # Act
        result = await progression.close_season(PLAYER, "season_1")
        await progression.report_match_result(PLAYER, 4_600)

        # Assert
        assert result.error_code == "INVALID_OPERATION"
        assert result.reason == "Season season_1 is still in progress"
        record = await progression.get_season_record(PLAYER, "season_1")
        assert not record.closed
        assert record.peak_trophies == 5_200
        assert (await progression.get_balances(PLAYER))["gems"] == 0

    async def test_unknown_season(self, progression):
        result = await progression.claim_season_reward(PLAYER, "season_0")

        assert result.error_code == "SEASON_NOT_FOUND"
        with pytest.raises(NotFoundError):
            await progression.get_season_record(PLAYER, "season_0")


# ============================================================================
# RANK PRESTIGE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestRankPrestige:
    """Test ExecutePrestige end to end."""

    async def test_prestige_resets_and_records_history(self, progression, published_events):
        # Arrange
        await progression.report_match_result(PLAYER, 4_600)

        # Act
        result = await progression.execute_prestige(PLAYER)

        # Assert
        assert result.value.peak_trophies == 4_600
        assert result.value.new_prestige == 1
        assert result.reason == "Reached Prestige 1"
        snapshot = await progression.get_rank_state(PLAYER)
        assert (snapshot.trophies, snapshot.prestige) == (0, 1)
        history = await progression.rank.prestige_history(PLAYER)
        assert [(h.prestige_level, h.peak_trophies, h.season_id) for h in history] == [
            (1, 4_600, "season_1")
        ]
        assert "rank.prestige_available" in [name for name, _ in published_events]

    async def test_prestige_below_legend_is_rejected(self, progression):
        await progression.report_match_result(PLAYER, 4_000)

        result = await progression.execute_prestige(PLAYER)

        assert result.error_code == "INVALID_OPERATION"
        assert "500 to go" in result.reason
        assert await progression.rank.prestige_history(PLAYER) == []

    async def test_prestige_display(self, progression):
        display = progression.rank.prestige_display(7)

        assert display["label"] == "Prestige 7"
        assert display["stars"] == "⭐⭐⭐⭐⭐ ⭐⭐"
        assert display["glow"][3] == pytest.approx(0.88)


# ============================================================================
# QUERIES AND FIRST CONTACT
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestQueries:
    """Test read paths and profile creation."""

    async def test_queries_for_unknown_player_do_not_persist(self, progression):
        rank = await progression.get_rank_state("stranger")
        deck = await progression.get_active_deck("stranger")
        balances = await progression.get_balances("stranger")
        collection = await progression.get_card_collection("stranger")

        assert rank.trophies == 0
        assert deck == ["freeze", "reverse", "shrink", "obstacle"]
        assert balances == {"coins": 0, "gems": 0}
        assert [r.card_id for r in collection] == ["freeze", "obstacle", "reverse", "shrink"]
        assert await _count_rows(PlayerProfileRow) == 0

    async def test_first_command_creates_profile_once(self, progression):
        await progression.report_match_result(PLAYER, 10)
        await progression.report_match_result(PLAYER, 10)

        assert await _count_rows(PlayerProfileRow) == 1
        async with DatabaseService.get_session() as session:
            row = await session.get(PlayerProfileRow, PLAYER)
            assert row.version == 2
            assert row.active_deck == ["freeze", "reverse", "shrink", "obstacle"]

    async def test_collection_summary(self, progression):
        await progression.add_card_copies(PLAYER, "blaze", 5)

        summary = {
            entry["card_id"]: entry for entry in await progression.cards.collection_summary(PLAYER)
        }

        assert summary["blaze"]["copies_needed"] == 5
        assert summary["blaze"]["coin_cost"] == 200
        assert summary["blaze"]["can_upgrade"] is True
        assert summary["freeze"]["can_upgrade"] is False

    async def test_card_stats_follow_upgrade(self, progression):
        # Arrange
        await progression.add_card_copies(PLAYER, "blaze", 5)
        base = await progression.get_card_stats(PLAYER, "blaze")
        await _seed_coins(progression, 200, "seed-1")

        # Act
        await progression.upgrade_card(PLAYER, "blaze")
        upgraded = await progression.get_card_stats(PLAYER, "blaze")

        # Assert
        assert base.values == {"speed": 1.0, "health": 100.0, "damage": 10.0}
        assert upgraded.rarity_multiplier == pytest.approx(1.1)
        assert upgraded.level_multiplier == pytest.approx(1.02)
        assert upgraded.values["health"] == pytest.approx(112.2)

    async def test_current_season(self, progression):
        season = progression.get_current_season()

        assert season.season_id == "season_1"
        assert progression.seasons.active_season_id() == "season_1"

    async def test_transaction_history_newest_first(self, progression):
        # Arrange
        await progression.add_card_copies(PLAYER, "blaze", 5)
        await _seed_coins(progression, 200, "seed-1")
        await progression.upgrade_card(PLAYER, "blaze")

        # Act
        history = await progression.get_transaction_history(PLAYER)

        # Assert
        assert [entry["transaction_type"] for entry in history] == [
            "card_upgrade",
            "ledger_debit",
            "ledger_credit",
            "card_copies_added",
        ]
        assert history[0]["context"] == "cards.upgrade"
        assert history[1]["details"]["amount"] == 200
        assert await progression.get_transaction_history("stranger") == []
