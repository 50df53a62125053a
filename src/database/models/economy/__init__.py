"""Economy tables: grant idempotency guard and audit log."""

from .grant_claim import CurrencyGrantClaim
from .transaction_log import TransactionLog

__all__ = ["CurrencyGrantClaim", "TransactionLog"]
