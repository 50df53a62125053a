"""
DeckService - Active skill loadout
==================================

Toggling a card removes it when present (leaving an empty slot) or places it
in the lowest empty slot. Only owned skill cards are accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.profile import PlayerProfile
    from src.modules.profile.unit_of_work import PlayerUnitOfWork


class DeckService(BaseService):
    def __init__(
        self,
        unit_of_work: PlayerUnitOfWork,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._uow = unit_of_work

    async def get_deck(self, player_id: str) -> List[Optional[str]]:
        """Slots in order; empty slots are None."""
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "deck.get_deck")
        return profile.deck.to_list()

    async def toggle(self, player_id: str, card_id: str) -> Tuple[bool, int]:
        """
        Returns (added, slot_index).

        Raises:
            DeckFullError: Adding to a deck with no empty slot
            NotFoundError: Card not owned
            ValidationError: Card is not a skill
        """
        self.validate_player_id(player_id)

        async def work(session: AsyncSession, profile: PlayerProfile) -> Tuple[bool, int]:
            return profile.toggle_deck_slot(card_id)

        result = await self._uow.execute(player_id, "deck.toggle", work)
        await self.publish_domain_events(result.events)

        added, slot = result.value
        self.log.info(
            "Deck slot toggled",
            extra={"player_id": player_id, "card_id": card_id, "added": added, "slot": slot},
        )
        return result.value
