"""
Base Repository Pattern

Generic async data access over one SQLAlchemy model. Repositories never
open or commit transactions: the caller passes the session it owns (the
unit of work for commands, a plain session for history queries) and maps
rows to domain objects on top of these primitives.

Usage
-----
    class GrantClaimRepository(BaseRepository[CurrencyGrantClaim]):
        async def find(self, session, player_id, source_transaction_id):
            return await self.get(session, (player_id, source_transaction_id))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(self, session: AsyncSession, key: Any) -> Optional[T]:
        """
        Primary-key lookup without a row lock.

        Args:
            session: Caller-owned session
            key: Primary key value, or a tuple for composite keys
        """
        instance = await session.get(self.model_class, key)
        self.log.debug(
            "Repository.get",
            extra={"model": self._model_name, "key": str(key), "found": instance is not None},
        )
        return instance

    async def get_for_update(self, session: AsyncSession, key: Any) -> Optional[T]:
        """
        Primary-key lookup with SELECT ... FOR UPDATE.

        SQLite ignores the row lock; there the player lock and the
        single-writer database serialize access.
        """
        instance = await session.get(self.model_class, key, with_for_update=True)
        self.log.debug(
            "Repository.get_for_update",
            extra={"model": self._model_name, "key": str(key), "found": instance is not None},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        instances = list((await session.execute(stmt)).scalars().all())
        self.log.debug(
            "Repository.find_many_where",
            extra={"model": self._model_name, "found_count": len(instances), "limit": limit},
        )
        return instances

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        return instance

    def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        session.add_all(instances)
        self.log.debug(
            "Repository.add_many",
            extra={"model": self._model_name, "count": len(instances)},
        )
        return list(instances)

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending rows so constraint violations surface inside the attempt."""
        await session.flush()
