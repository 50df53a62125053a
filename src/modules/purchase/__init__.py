"""
Purchase Module
===============

Gem pack fulfilment on top of the ledger's idempotent grants.
"""

from .service import PurchaseService

__all__ = ["PurchaseService"]
