"""Grant idempotency guard repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.database.models import CurrencyGrantClaim
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class GrantClaimRepository(BaseRepository[CurrencyGrantClaim]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(CurrencyGrantClaim, logger)

    async def find(
        self, session: AsyncSession, player_id: str, source_transaction_id: str
    ) -> Optional[CurrencyGrantClaim]:
        return await self.get(session, (player_id, source_transaction_id))

    async def record(
        self,
        session: AsyncSession,
        player_id: str,
        source_transaction_id: str,
        currency: str,
        amount: int,
        product_id: Optional[str] = None,
    ) -> CurrencyGrantClaim:
        claim = self.add(
            session,
            CurrencyGrantClaim(
                player_id=player_id,
                source_transaction_id=source_transaction_id,
                currency=currency,
                amount=amount,
                product_id=product_id,
            ),
        )
        await self.flush(session)
        return claim
