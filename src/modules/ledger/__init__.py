"""
Ledger Module
=============

Currency balances, movements and idempotent external grants.

Exports:
- LedgerService: balance queries, credit/debit, grant_currency
- GrantClaimRepository: grant idempotency guard
"""

from .repository import GrantClaimRepository
from .service import GrantOutcome, LedgerService

__all__ = ["LedgerService", "GrantOutcome", "GrantClaimRepository"]
