"""
CurrencyGrantClaim Model - Idempotency Guard for Currency Grants
================================================================

Purpose
-------
Prevents double-crediting when the storefront retries a purchase grant.
Every applied grant records its source transaction id in the same
transaction as the ledger credit; a repeat finds the row and returns the
original amount instead of crediting again.

Schema Design
-------------
- Composite primary key (player_id, source_transaction_id) makes a
  duplicate claim impossible at the database level
- currency/amount record what was originally granted
- claimed_at for audit trail
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, UInt64, utcnow


class CurrencyGrantClaim(Base):
    """One applied external currency grant."""

    __tablename__ = "currency_grant_claims"

    # ========================================================================
    # PRIMARY KEY COMPONENTS
    # ========================================================================

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    source_transaction_id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # ========================================================================
    # GRANT DETAILS
    # ========================================================================

    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[int] = mapped_column(UInt64(), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_currency_grant_claims_claimed_at", "claimed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CurrencyGrantClaim("
            f"player_id={self.player_id!r}, "
            f"source_transaction_id={self.source_transaction_id!r}, "
            f"currency={self.currency!r}, amount={self.amount}"
            f")>"
        )
