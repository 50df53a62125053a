"""
Profile persistence.

Maps the `PlayerProfile` aggregate to its `player_profiles` row and writes
the audit trail for committed economy events. Pure data access: callers own
the transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from src.database.models import PlayerProfileRow, TransactionLog, TransactionType
from src.domain.models.ledger import CurrencyKind
from src.domain.models.profile import PlayerProfile, ProgressionRules
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.domain.models.base import DomainEvent


class ProfileRepository(BaseRepository[PlayerProfileRow]):
    """Load and store whole profiles, one row per player."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(PlayerProfileRow, logger)

    @staticmethod
    def to_domain(row: PlayerProfileRow, rules: ProgressionRules) -> PlayerProfile:
        """
        Raises
        ------
        InvariantViolationError
            If the stored document is corrupt
        """
        document = {
            "ledger": {
                CurrencyKind.SOFT.value: row.soft_balance,
                CurrencyKind.PREMIUM.value: row.premium_balance,
            },
            "rank": {"trophies": row.trophies, "prestige": row.rank_prestige},
            "collection": row.collection or {},
            "deck": row.active_deck or [],
            "seasons": row.seasons or {},
        }
        return PlayerProfile.from_document(row.player_id, rules, document, version=row.version)

    async def load(
        self,
        session: AsyncSession,
        player_id: str,
        rules: ProgressionRules,
        *,
        for_update: bool = False,
    ) -> Optional[PlayerProfile]:
        if for_update:
            row = await self.get_for_update(session, player_id)
        else:
            row = await self.get(session, player_id)
        return None if row is None else self.to_domain(row, rules)

    async def load_or_create(
        self, session: AsyncSession, player_id: str, rules: ProgressionRules
    ) -> Tuple[PlayerProfile, bool]:
        """Locked load; a missing player gets a fresh in-memory profile."""
        profile = await self.load(session, player_id, rules, for_update=True)
        if profile is not None:
            return profile, False
        self.log.info(
            "Creating player profile",
            extra={"player_id": player_id, "starter_skills": list(rules.starter_skills)},
        )
        return PlayerProfile.new(player_id, rules), True

    async def save(self, session: AsyncSession, profile: PlayerProfile) -> PlayerProfileRow:
        """Write every section of the profile and bump its version."""
        row = await self.get(session, profile.id)
        if row is None:
            row = self.add(session, PlayerProfileRow(player_id=profile.id))

        document = profile.to_document()
        row.soft_balance = profile.ledger.soft
        row.premium_balance = profile.ledger.premium
        row.trophies = document["rank"]["trophies"]
        row.rank_prestige = document["rank"]["prestige"]
        row.collection = document["collection"]
        row.active_deck = document["deck"]
        row.seasons = document["seasons"]
        row.version = profile.version + 1
        profile.version = row.version

        await self.flush(session)
        return row


class TransactionLogRepository(BaseRepository[TransactionLog]):
    """Append-only audit trail."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(TransactionLog, logger)

    def append_events(
        self,
        session: AsyncSession,
        player_id: str,
        events: Iterable[DomainEvent],
        context: str,
    ) -> List[TransactionLog]:
        entries = []
        for event in events:
            transaction_type = TransactionType.for_event(event.event_name)
            if transaction_type is None:
                continue
            entries.append(
                TransactionLog(
                    player_id=player_id,
                    transaction_type=transaction_type.value,
                    details=dict(event.payload),
                    context=context,
                    timestamp=event.occurred_at,
                )
            )
        if entries:
            self.add_many(session, entries)
        return entries

    async def for_player(
        self, session: AsyncSession, player_id: str, limit: int = 50
    ) -> List[TransactionLog]:
        return await self.find_many_where(
            session,
            TransactionLog.player_id == player_id,
            order_by=[TransactionLog.timestamp.desc(), TransactionLog.id.desc()],
            limit=limit,
        )
