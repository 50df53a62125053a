"""
TransactionLog: economy audit log (immutable).
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utcnow


class TransactionLog(Base, IdMixin):
    """
    Audit log for ledger movements, upgrades, grants and season rewards.

    Schema-only:
    - player_id
    - transaction_type (see enums.TransactionType)
    - details (JSON event payload)
    - context (operation that produced the entry)
    - timestamp
    """

    __tablename__ = "transaction_logs"
    __table_args__ = (
        Index("ix_transaction_logs_player_time", "player_id", "timestamp"),
        Index("ix_transaction_logs_type", "transaction_type"),
    )

    player_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    transaction_type: Mapped[str] = mapped_column(String(64), nullable=False)

    details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    context: Mapped[str] = mapped_column(String(64), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
