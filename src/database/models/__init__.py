# src/database/models/__init__.py
"""
Unified model aggregator for all progression tables.

Importing this package registers every table on ``Base.metadata``.
"""

# --- Core ---
from .core.player_profile import PlayerProfileRow

# --- Economy ---
from .economy.grant_claim import CurrencyGrantClaim
from .economy.transaction_log import TransactionLog

# --- Progression ---
from .progression.rank_prestige_record import RankPrestigeRecord

from .enums import TransactionType

__all__ = [
    # Core
    "PlayerProfileRow",
    # Economy
    "CurrencyGrantClaim", "TransactionLog",
    # Progression
    "RankPrestigeRecord",
    # Enums
    "TransactionType",
]
