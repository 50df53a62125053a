"""
Integration Tests for Currency Grants and Purchases
===================================================

Test Coverage
-------------
- Exactly-once grants keyed by source transaction id
- Concurrent duplicate deliveries
- Retries carrying different parameters keep the original grant
- Gem pack purchases and unknown products
- Balance range at the 64-bit ceiling
"""

import asyncio

import pytest
from sqlalchemy import func, select

from src.core.database.service import DatabaseService
from src.database.models import CurrencyGrantClaim, TransactionLog, TransactionType

PLAYER = "player-1"
MAX_BALANCE = 2**64 - 1


async def _count(model, *criteria) -> int:
    async with DatabaseService.get_session() as session:
        stmt = select(func.count()).select_from(model)
        for criterion in criteria:
            stmt = stmt.where(criterion)
        return (await session.execute(stmt)).scalar_one()


@pytest.mark.integration
@pytest.mark.database
class TestGrantCurrency:
    """Test GrantCurrency idempotency."""

    async def test_first_grant_credits(self, progression, published_events):
        # Act
        result = await progression.grant_currency(PLAYER, "gems", 80, "store-tx-1")

        # Assert
        assert result
        assert result.value == 80
        assert result.reason == "Granted 80 gems"
        assert result.details == {"duplicate": False, "currency": "gems", "balance": 80}
        assert await progression.get_balances(PLAYER) == {"coins": 0, "gems": 80}
        assert ("ledger.credited", {
            "player_id": PLAYER,
            "currency": "gems",
            "amount": 80,
            "balance": 80,
            "reason": "grant:store-tx-1",
        }) in published_events

    async def test_repeat_returns_original_and_credits_nothing(self, progression):
        await progression.grant_currency(PLAYER, "gems", 80, "store-tx-1")

        repeat = await progression.grant_currency(PLAYER, "gems", 80, "store-tx-1")

        assert repeat
        assert repeat.value == 80
        assert repeat.details["duplicate"] is True
        assert repeat.reason == "Grant store-tx-1 was already applied"
        assert (await progression.get_balances(PLAYER))["gems"] == 80
        assert await _count(CurrencyGrantClaim) == 1

    async def test_repeat_with_different_parameters_keeps_original(self, progression):
        await progression.grant_currency(PLAYER, "gems", 80, "store-tx-1")

        repeat = await progression.grant_currency(PLAYER, "coins", 5_000, "store-tx-1")

        assert repeat.details == {"duplicate": True, "currency": "gems", "balance": 80}
        assert repeat.value == 80
        assert await progression.get_balances(PLAYER) == {"coins": 0, "gems": 80}

    async def test_concurrent_duplicates_credit_once(self, progression):
        # Act
        results = await asyncio.gather(
            *(progression.grant_currency(PLAYER, "gems", 500, "store-tx-9") for _ in range(4))
        )

        # Assert
        assert all(results)
        assert sum(not r.details["duplicate"] for r in results) == 1
        assert (await progression.get_balances(PLAYER))["gems"] == 500
        assert await _count(
            TransactionLog,
            TransactionLog.transaction_type == TransactionType.LEDGER_CREDIT.value,
        ) == 1

    async def test_same_transaction_id_is_scoped_per_player(self, progression):
        await progression.grant_currency("player-a", "coins", 100, "shared-tx")

        other = await progression.grant_currency("player-b", "coins", 100, "shared-tx")

        assert other.details["duplicate"] is False
        assert (await progression.get_balances("player-b"))["coins"] == 100

    @pytest.mark.parametrize("amount", [0, -10, 2.5])
    async def test_invalid_amount_is_rejected(self, progression, amount):
        result = await progression.grant_currency(PLAYER, "gems", amount, "store-tx-2")

        assert not result
        assert result.error_code == "VALIDATION_ERROR"
        assert await _count(CurrencyGrantClaim) == 0

    async def test_unknown_currency_is_rejected(self, progression):
        result = await progression.grant_currency(PLAYER, "diamonds", 10, "store-tx-3")

        assert result.error_code == "VALIDATION_ERROR"

    async def test_balance_reaches_ceiling_then_rejects_overflow(self, progression):
        # Arrange
        filled = await progression.grant_currency(PLAYER, "gems", MAX_BALANCE, "whale-1")
        assert filled.details["balance"] == MAX_BALANCE

        # Act
        overflow = await progression.grant_currency(PLAYER, "gems", 1, "whale-2")

        # Assert
        assert overflow.error_code == "OUT_OF_RANGE"
        assert overflow.reason == "gems balance cannot exceed 18,446,744,073,709,551,615."
        assert (await progression.get_balances(PLAYER))["gems"] == MAX_BALANCE
        assert await _count(
            CurrencyGrantClaim, CurrencyGrantClaim.source_transaction_id == "whale-2"
        ) == 0


@pytest.mark.integration
@pytest.mark.database
class TestGrantPurchase:
    """Test gem pack fulfilment."""

    async def test_pack_credits_configured_gems(self, progression):
        result = await progression.grant_purchase(PLAYER, "gems_500", "order-1")

        assert result.value == 500
        assert result.reason == "Added 500 gems"
        assert (await progression.get_balances(PLAYER))["gems"] == 500

    async def test_repeat_order_is_fulfilled_once(self, progression):
        await progression.grant_purchase(PLAYER, "gems_80", "order-1")

        repeat = await progression.grant_purchase(PLAYER, "gems_80", "order-1")

        assert repeat.details["duplicate"] is True
        assert repeat.reason == "Purchase order-1 was already fulfilled"
        assert (await progression.get_balances(PLAYER))["gems"] == 80
        async with DatabaseService.get_session() as session:
            claim = await session.get(CurrencyGrantClaim, (PLAYER, "order-1"))
            assert claim.product_id == "gems_80"

    async def test_unknown_product_is_rejected(self, progression):
        result = await progression.grant_purchase(PLAYER, "gems_999", "order-2")

        assert result.error_code == "PRODUCT_NOT_FOUND"
        assert result.reason == "Product not found: gems_999"
        assert await _count(CurrencyGrantClaim) == 0
