"""Progression history tables."""

from .rank_prestige_record import RankPrestigeRecord

__all__ = ["RankPrestigeRecord"]
