"""
CardService - Business logic for the card collection and upgrades
=================================================================

Handles:
- Collection queries and per-card stat computation
- Upgrade cost preview and eligibility checks
- Atomic upgrades (copies + coins + rarity/prestige advance in one commit)
- Copy acquisition (first copy creates the card at Common, level 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from src.domain.models.cards import CardRecord, CardStats, UpgradeCost, can_upgrade, upgrade_cost
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.profile import CardUpgrade, PlayerProfile
    from src.modules.profile.unit_of_work import PlayerUnitOfWork


class CardService(BaseService):
    """Card collection reads and mutations."""

    def __init__(
        self,
        unit_of_work: PlayerUnitOfWork,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._uow = unit_of_work

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_collection(self, player_id: str) -> List[CardRecord]:
        """Owned cards ordered by card id."""
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "cards.get_collection")
        return sorted(profile.collection.records(), key=lambda r: r.card_id)

    async def get_card(self, player_id: str, card_id: str) -> CardRecord:
        """
        Raises:
            NotFoundError: Card not owned
        """
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "cards.get_card")
        return profile.collection.require(card_id)

    async def upgrade_cost(self, player_id: str, card_id: str) -> UpgradeCost:
        record = await self.get_card(player_id, card_id)
        return upgrade_cost(record, self._uow.rules.upgrades)

    async def can_upgrade(self, player_id: str, card_id: str) -> bool:
        """Copy eligibility only; coins are checked when the upgrade runs."""
        record = await self.get_card(player_id, card_id)
        return can_upgrade(record, self._uow.rules.upgrades)

    async def card_stats(self, player_id: str, card_id: str) -> CardStats:
        record = await self.get_card(player_id, card_id)
        return self._uow.rules.stats.compute(record)

    async def collection_summary(self, player_id: str) -> List[Dict[str, Any]]:
        """Owned cards with their next-upgrade cost, for collection screens."""
        records = await self.get_collection(player_id)
        rules = self._uow.rules.upgrades
        summary = []
        for record in records:
            cost = upgrade_cost(record, rules)
            summary.append(
                {
                    **record.to_dict(),
                    "card_id": record.card_id,
                    "name": self._uow.rules.catalogue.get(record.card_id).name,
                    "copies_needed": cost.copies_needed,
                    "coin_cost": cost.coin_cost,
                    "can_upgrade": record.copies >= cost.copies_needed,
                }
            )
        return summary

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def upgrade(self, player_id: str, card_id: str) -> CardUpgrade:
        """
        Upgrade one owned card.

        Raises:
            NotFoundError: Card not owned
            InsufficientCopiesError: Not enough copies
            InsufficientFundsError: Not enough coins; nothing changes
        """
        self.validate_player_id(player_id)

        async def work(session: AsyncSession, profile: PlayerProfile) -> CardUpgrade:
            return profile.upgrade_card(card_id)

        result = await self._uow.execute(player_id, "cards.upgrade", work)
        await self.publish_domain_events(result.events)

        upgrade = result.value
        self.log.info(
            "Card upgraded",
            extra={
                "player_id": player_id,
                "card_id": card_id,
                "from_rarity": upgrade.from_rarity.name,
                "to_rarity": upgrade.to_rarity.name,
                "prestige": upgrade.prestige,
                "coins_spent": upgrade.coins_spent,
            },
        )
        return upgrade

    async def add_copies(self, player_id: str, card_id: str, count: int) -> CardRecord:
        """
        Add copies of a catalogue card, creating it on first acquisition.

        Raises:
            ValidationError: count not positive
            NotFoundError: card_id not in the catalogue
        """
        self.validate_player_id(player_id)
        self.validate_positive_int(count, "count")

        async def work(session: AsyncSession, profile: PlayerProfile) -> CardRecord:
            return profile.add_card_copies(card_id, count)

        result = await self._uow.execute(player_id, "cards.add_copies", work)
        await self.publish_domain_events(result.events)
        return result.value
