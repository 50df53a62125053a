"""
Rank Module
===========

Trophies, tier lookup and rank prestige resets.
"""

from .service import RankService

__all__ = ["RankService"]
