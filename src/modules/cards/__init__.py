"""
Cards Module
============

Card collection queries, upgrade previews and atomic upgrades.
"""

from .service import CardService

__all__ = ["CardService"]
