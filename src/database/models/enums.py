"""
Database Model Enums
====================

Lightweight enumerations for categorical columns. Declarative schema
helpers, not business logic containers.
"""

from __future__ import annotations

import enum
from typing import Optional


class TransactionType(str, enum.Enum):
    """
    Categories of audited economy movements.

    Each committed domain event that moves currency, copies or rank
    prestige maps to one of these.
    """

    LEDGER_CREDIT = "ledger_credit"
    LEDGER_DEBIT = "ledger_debit"
    CARD_COPIES_ADDED = "card_copies_added"
    CARD_UPGRADE = "card_upgrade"
    SEASON_REWARD = "season_reward"
    RANK_PRESTIGE = "rank_prestige"

    @classmethod
    def for_event(cls, event_name: str) -> Optional[TransactionType]:
        return _EVENT_TYPES.get(event_name)


_EVENT_TYPES = {
    "ledger.credited": TransactionType.LEDGER_CREDIT,
    "ledger.debited": TransactionType.LEDGER_DEBIT,
    "card.copies_added": TransactionType.CARD_COPIES_ADDED,
    "card.upgraded": TransactionType.CARD_UPGRADE,
    "season.reward_granted": TransactionType.SEASON_REWARD,
    "rank.prestige_completed": TransactionType.RANK_PRESTIGE,
}
