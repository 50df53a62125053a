"""
Deck Module
===========

Active skill loadout management.
"""

from .service import DeckService

__all__ = ["DeckService"]
