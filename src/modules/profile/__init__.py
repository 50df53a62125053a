"""
Profile Module
==============

Persistence and the per-player unit of work shared by every feature service.

Exports:
- ProfileRepository: profile row <-> aggregate mapping
- TransactionLogRepository: audit trail
- PlayerUnitOfWork: lock + retrying transaction + audit pipeline
"""

from .repository import ProfileRepository, TransactionLogRepository
from .unit_of_work import PlayerUnitOfWork, UnitOfWorkResult

__all__ = [
    "ProfileRepository",
    "TransactionLogRepository",
    "PlayerUnitOfWork",
    "UnitOfWorkResult",
]
