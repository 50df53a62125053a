"""
LedgerService - Business logic for the currency ledger
======================================================

Handles:
- Balance queries (coins and gems)
- Credits and debits for other game systems
- Idempotent external currency grants keyed on the storefront transaction id

Every movement is committed before this service returns, and the
`ledger.credited` / `ledger.debited` notifications are published only after
that commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Union

from src.domain.models.ledger import CurrencyKind
from src.modules.ledger.repository import GrantClaimRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.profile import PlayerProfile
    from src.modules.profile.unit_of_work import PlayerUnitOfWork


@dataclass(frozen=True)
class GrantOutcome:
    """Result of an external grant. `duplicate` marks an already-applied id."""

    currency: CurrencyKind
    amount: int
    balance: int
    duplicate: bool


class LedgerService(BaseService):
    """Ledger reads and movements for one player at a time."""

    def __init__(
        self,
        unit_of_work: PlayerUnitOfWork,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._uow = unit_of_work
        self._claims = GrantClaimRepository(self.log)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_balances(self, player_id: str) -> Dict[str, int]:
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "ledger.get_balances")
        return profile.ledger.to_dict()

    # -------------------------------------------------------------------------
    # Movements
    # -------------------------------------------------------------------------

    async def credit(
        self,
        player_id: str,
        kind: Union[CurrencyKind, str],
        amount: int,
        reason: str,
    ) -> int:
        """
        Credit a balance and return the committed new value.

        Raises:
            ValidationError: Non-positive amount or unknown currency
            OutOfRangeError: Balance would pass 2**64-1
        """
        self.validate_player_id(player_id)
        currency = CurrencyKind.parse(kind)
        self.validate_positive_int(amount, "amount")

        async def work(session: AsyncSession, profile: PlayerProfile) -> int:
            return profile.credit(currency, amount, reason=reason)

        result = await self._uow.execute(player_id, "ledger.credit", work)
        await self.publish_domain_events(result.events)
        return result.value

    async def debit(
        self,
        player_id: str,
        kind: Union[CurrencyKind, str],
        amount: int,
        reason: str,
    ) -> int:
        """
        Debit a balance and return the committed new value.

        Raises:
            ValidationError: Non-positive amount or unknown currency
            InsufficientFundsError: Balance below amount; nothing debited
        """
        self.validate_player_id(player_id)
        currency = CurrencyKind.parse(kind)
        self.validate_positive_int(amount, "amount")

        async def work(session: AsyncSession, profile: PlayerProfile) -> int:
            return profile.debit(currency, amount, reason=reason)

        result = await self._uow.execute(player_id, "ledger.debit", work)
        await self.publish_domain_events(result.events)
        return result.value

    async def grant_currency(
        self,
        player_id: str,
        kind: Union[CurrencyKind, str],
        amount: int,
        source_transaction_id: str,
        product_id: Optional[str] = None,
    ) -> GrantOutcome:
        """
        Apply an external grant exactly once per source transaction id.

        The claim row and the credit commit together; a repeat of the same
        id returns the originally granted amount without crediting.

        Raises:
            ValidationError: Bad amount, currency or transaction id
            OutOfRangeError: Balance would pass 2**64-1
        """
        self.validate_player_id(player_id)
        currency = CurrencyKind.parse(kind)
        self.validate_positive_int(amount, "amount")
        if not isinstance(source_transaction_id, str) or not source_transaction_id.strip():
            raise ValidationError("source_transaction_id", "cannot be empty")

        async def work(session: AsyncSession, profile: PlayerProfile) -> GrantOutcome:
            existing = await self._claims.find(session, player_id, source_transaction_id)
            if existing is not None:
                original = CurrencyKind.parse(existing.currency)
                if original is not currency or existing.amount != amount:
                    self.log.warning(
                        "Grant retried with different parameters; original kept",
                        extra={
                            "player_id": player_id,
                            "source_transaction_id": source_transaction_id,
                            "original_currency": existing.currency,
                            "original_amount": existing.amount,
                            "requested_currency": currency.value,
                            "requested_amount": amount,
                        },
                    )
                return GrantOutcome(
                    currency=original,
                    amount=existing.amount,
                    balance=profile.ledger.balance(original),
                    duplicate=True,
                )

            balance = profile.credit(
                currency, amount, reason=f"grant:{source_transaction_id}"
            )
            await self._claims.record(
                session,
                player_id,
                source_transaction_id,
                currency.value,
                amount,
                product_id=product_id,
            )
            return GrantOutcome(currency=currency, amount=amount, balance=balance, duplicate=False)

        result = await self._uow.execute(player_id, "ledger.grant_currency", work)
        await self.publish_domain_events(result.events)

        self.log.info(
            "Currency grant processed",
            extra={
                "player_id": player_id,
                "source_transaction_id": source_transaction_id,
                "currency": result.value.currency.value,
                "amount": result.value.amount,
                "duplicate": result.value.duplicate,
            },
        )
        return result.value
