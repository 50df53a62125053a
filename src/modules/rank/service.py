"""
RankService - Trophies, tiers and rank prestige
===============================================

Handles:
- Applying match results (clamped at zero) and tracking the season peak
- Tier lookup for any trophy count
- Prestige resets once a player holds Legend-tier trophies
- Prestige badge display values (stars, label, glow)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.service import DatabaseService
from src.database.models import RankPrestigeRecord
from src.domain.models.rank import (
    RankSnapshot,
    TierInfo,
    prestige_glow_color,
    prestige_label,
    prestige_stars,
)
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.profile import PlayerProfile, PrestigeReset
    from src.modules.season.service import SeasonService
    from src.modules.profile.unit_of_work import PlayerUnitOfWork


class RankService(BaseService):
    """Rank progression for players."""

    def __init__(
        self,
        unit_of_work: PlayerUnitOfWork,
        seasons: SeasonService,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._uow = unit_of_work
        self._seasons = seasons
        self._history = BaseRepository[RankPrestigeRecord](RankPrestigeRecord, logger)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_rank(self, player_id: str) -> RankSnapshot:
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "rank.get_rank")
        return profile.rank

    def tier_for(self, trophies: int) -> TierInfo:
        """
        Raises:
            ValidationError: trophies negative or not an integer
        """
        return self._uow.rules.tiers.for_trophies(trophies)

    async def prestige_history(self, player_id: str, limit: int = 20) -> List[RankPrestigeRecord]:
        self.validate_player_id(player_id)
        async with DatabaseService.get_session() as session:
            return await self._history.find_many_where(
                session,
                RankPrestigeRecord.player_id == player_id,
                order_by=[RankPrestigeRecord.prestige_level.desc()],
                limit=limit,
            )

    def prestige_display(self, prestige: int) -> Dict[str, Any]:
        """Badge values for a prestige level, styled from `rank.prestige`."""
        self.validate_non_negative_int(prestige, "prestige")
        color = tuple(self.get_config("rank.prestige.glow_color", [0.65, 0.10, 1.00]))
        return {
            "prestige": prestige,
            "label": prestige_label(prestige),
            "stars": prestige_stars(
                prestige, int(self.get_config("rank.prestige.stars_per_group", 5))
            ),
            "glow": prestige_glow_color(
                prestige,
                color,
                float(self.get_config("rank.prestige.glow_base_intensity", 0.6)),
                float(self.get_config("rank.prestige.glow_step", 0.04)),
            ),
        }

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def report_match_result(self, player_id: str, trophy_delta: int) -> RankSnapshot:
        """
        Apply a match's trophy delta.

        Trophies clamp at zero. While the current season is open its peak
        watermark follows the new trophy count.

        Raises:
            ValidationError: delta is not an integer
        """
        self.validate_player_id(player_id)
        season_id = self._seasons.active_season_id()

        async def work(session: AsyncSession, profile: PlayerProfile) -> RankSnapshot:
            profile.apply_match_result(trophy_delta, season_id=season_id)
            return profile.rank

        result = await self._uow.execute(player_id, "rank.report_match_result", work)
        await self.publish_domain_events(result.events)

        snapshot = result.value
        self.log.info(
            "Match result applied",
            extra={
                "player_id": player_id,
                "trophy_delta": trophy_delta,
                "trophies": snapshot.trophies,
                "tier": snapshot.tier.name,
                "season_id": season_id,
            },
        )
        return snapshot

    async def execute_prestige(self, player_id: str) -> PrestigeReset:
        """
        Reset trophies to zero and raise rank prestige by one.

        Raises:
            InvalidOperationError: Trophies below the Legend threshold
        """
        self.validate_player_id(player_id)
        season_id: Optional[str] = self._seasons.active_season_id()

        async def work(session: AsyncSession, profile: PlayerProfile) -> PrestigeReset:
            reset = profile.execute_prestige()
            self._history.add(
                session,
                RankPrestigeRecord(
                    player_id=player_id,
                    prestige_level=reset.new_prestige,
                    peak_trophies=reset.peak_trophies,
                    season_id=season_id,
                ),
            )
            return reset

        result = await self._uow.execute(player_id, "rank.execute_prestige", work)
        await self.publish_domain_events(result.events)

        self.log.info(
            "Rank prestige executed",
            extra={
                "player_id": player_id,
                "prestige": result.value.new_prestige,
                "peak_trophies": result.value.peak_trophies,
            },
        )
        return result.value
