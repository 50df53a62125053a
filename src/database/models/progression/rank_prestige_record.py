"""
RankPrestigeRecord: history of rank prestige resets.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utcnow


class RankPrestigeRecord(Base, IdMixin):
    """One executed prestige reset: trophies at reset and the new level."""

    __tablename__ = "rank_prestige_records"
    __table_args__ = (
        Index("ix_rank_prestige_records_player", "player_id", "prestige_level"),
    )

    player_id: Mapped[str] = mapped_column(String(128), nullable=False)
    prestige_level: Mapped[int] = mapped_column(Integer, nullable=False)
    peak_trophies: Mapped[int] = mapped_column(Integer, nullable=False)
    season_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
