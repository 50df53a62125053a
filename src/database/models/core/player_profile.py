"""
PlayerProfileRow: one stored progression document per player.
Pure schema only.

The ledger, rank counters and a version counter are plain columns; the card
collection, deck slots and season records are JSON documents validated by
the domain layer on load.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin, UInt64


class PlayerProfileRow(Base, TimestampMixin):
    """
    Persistent layout of a player profile.

    Columns:
    - player_id (PK, opaque account id)
    - soft_balance / premium_balance (unsigned 64-bit)
    - trophies / rank_prestige
    - collection: {card_id: {kind, copies, level, rarity, prestige}}
    - active_deck: [card_id | null, ...] in slot order
    - seasons: {season_id: {peak_trophies, claimed, gem_reward, ...}}
    - version: incremented on every committed mutation
    """

    __tablename__ = "player_profiles"

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    soft_balance: Mapped[int] = mapped_column(UInt64(), nullable=False, default=0)
    premium_balance: Mapped[int] = mapped_column(UInt64(), nullable=False, default=0)

    trophies: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), nullable=False, default=0, index=True
    )
    rank_prestige: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    collection: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    active_deck: Mapped[List[Optional[str]]] = mapped_column(JSON, nullable=False, default=list)
    seasons: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<PlayerProfileRow(player_id={self.player_id!r}, "
            f"trophies={self.trophies}, version={self.version})>"
        )
