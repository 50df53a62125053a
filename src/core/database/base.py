"""
Declarative base and shared column mixins for ORM models.

Every table in ``src.database.models`` derives from `Base`, so a single
``Base.metadata.create_all`` builds the whole schema.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all progression tables."""


class IdMixin:
    """Surrogate integer primary key."""

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )


class TimestampMixin:
    """Creation and last-update timestamps (UTC)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class UInt64(TypeDecorator):
    """
    Unsigned 64-bit integer stored as decimal text.

    Signed BIGINT (and SQLite INTEGER) stop at 2**63-1; ledger balances go to
    2**64-1.
    """

    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value: Optional[int], dialect: Any) -> Optional[str]:
        if value is None:
            return None
        if not 0 <= int(value) <= 2**64 - 1:
            raise ValueError(f"UInt64 out of range: {value}")
        return str(int(value))

    def process_result_value(self, value: Optional[str], dialect: Any) -> Optional[int]:
        return None if value is None else int(value)
