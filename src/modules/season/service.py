"""
SeasonService - Season calendar, settlement and reward claims
=============================================================

Handles:
- The configured current season and whether it is open right now
- Per-player season records (peak trophies watermark)
- Closing a season for a player (freezes peak, tier and prestige)
- Exactly-once gem reward claims, surviving restarts

The calendar is read through an injectable clock so settlement can be driven
deterministically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from src.domain.models.season import SeasonInfo, SeasonRecord
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.profile import PlayerProfile, SeasonClaim
    from src.modules.profile.unit_of_work import PlayerUnitOfWork


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SeasonService(BaseService):
    """
    Season lifecycle for players.

    Args:
        unit_of_work: Per-player unit of work
        config_manager: Balance configuration manager
        event_bus: Event bus for post-commit notifications
        logger: Structured logger instance
        clock: Returns the current UTC time; defaults to the wall clock
    """

    def __init__(
        self,
        unit_of_work: PlayerUnitOfWork,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._uow = unit_of_work
        self._clock = clock or utc_now

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def current_season(self) -> SeasonInfo:
        return SeasonInfo.from_config()

    def active_season_id(self) -> Optional[str]:
        """Id of the configured season when it is open now, else None."""
        season = self.current_season()
        return season.season_id if season.is_active(self.now()) else None

    def is_open(self, season_id: str) -> bool:
        season = self.current_season()
        return season.season_id == season_id and season.is_active(self.now())

    def gem_reward(self, peak_trophies: int) -> int:
        self.validate_non_negative_int(peak_trophies, "peak_trophies")
        return self._uow.rules.season_rewards.gem_reward(peak_trophies)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_record(self, player_id: str, season_id: str) -> SeasonRecord:
        """
        Raises:
            NotFoundError: The player has no record for the season
        """
        self.validate_player_id(player_id)
        profile = await self._uow.read(player_id, "season.get_record")
        return profile.season(season_id)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def close_season(self, player_id: str, season_id: str) -> SeasonRecord:
        """
        Freeze a player's season record. Closing twice is a no-op.

        Raises:
            NotFoundError: No record for the season
            InvalidOperationError: The season is still in progress
        """
        self.validate_player_id(player_id)
        season_open = self.is_open(season_id)

        async def work(session: AsyncSession, profile: PlayerProfile) -> SeasonRecord:
            profile.close_season(season_id, season_open=season_open)
            return profile.season(season_id)

        result = await self._uow.execute(player_id, "season.close", work)
        await self.publish_domain_events(result.events)
        return result.value

    async def claim_reward(self, player_id: str, season_id: str) -> SeasonClaim:
        """
        Credit the season's gem reward once.

        A season that ended on the calendar but was never closed is closed
        as part of the claim. Repeated claims return the stored reward with
        `already_claimed` set and credit nothing.

        Raises:
            NotFoundError: No record for the season
            InvalidOperationError: The season is still in progress
        """
        self.validate_player_id(player_id)
        season_open = self.is_open(season_id)

        async def work(session: AsyncSession, profile: PlayerProfile) -> SeasonClaim:
            return profile.claim_season_reward(season_id, season_open=season_open)

        result = await self._uow.execute(player_id, "season.claim_reward", work)
        await self.publish_domain_events(result.events)

        claim = result.value
        if claim.already_claimed:
            self.log.info(
                "Season reward already claimed",
                extra={"player_id": player_id, "season_id": season_id},
            )
        else:
            self.log.info(
                "Season reward granted",
                extra={"player_id": player_id, "season_id": season_id, "gems": claim.granted},
            )
        return claim
