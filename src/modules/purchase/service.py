"""
PurchaseService - Storefront gem pack fulfilment
================================================

Maps a verified store product id to its gem amount (`purchase.gem_packs`)
and hands the grant to the ledger, keyed on the store transaction id so a
replayed receipt never credits twice. Receipt verification happens upstream.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict

from src.domain.models.ledger import CurrencyKind
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.ledger.service import GrantOutcome, LedgerService


class PurchaseService(BaseService):
    def __init__(
        self,
        ledger: LedgerService,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger

    def catalogue(self) -> Dict[str, int]:
        packs = self.get_config("purchase.gem_packs", {}) or {}
        return {str(product_id): int(gems) for product_id, gems in packs.items()}

    def resolve_product(self, product_id: str) -> int:
        """
        Gem amount for a store product.

        Raises:
            NotFoundError: Unknown product id
        """
        gems = self.catalogue().get(product_id)
        if gems is None:
            raise NotFoundError("Product", product_id)
        return gems

    async def grant_purchase(
        self, player_id: str, product_id: str, source_transaction_id: str
    ) -> GrantOutcome:
        """
        Credit a purchased gem pack once per store transaction.

        Raises:
            NotFoundError: Unknown product id
            ValidationError: Bad player or transaction id
        """
        gems = self.resolve_product(product_id)
        outcome = await self._ledger.grant_currency(
            player_id,
            CurrencyKind.PREMIUM,
            gems,
            source_transaction_id,
            product_id=product_id,
        )
        if not outcome.duplicate:
            await self.emit_event(
                "purchase.granted",
                {
                    "player_id": player_id,
                    "product_id": product_id,
                    "gems": gems,
                    "balance": outcome.balance,
                    "source_transaction_id": source_transaction_id,
                },
            )
            self.log.info(
                "Gem pack fulfilled",
                extra={
                    "player_id": player_id,
                    "product_id": product_id,
                    "gems": gems,
                    "source_transaction_id": source_transaction_id,
                },
            )
        return outcome
