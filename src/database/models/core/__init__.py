"""Core player tables."""

from .player_profile import PlayerProfileRow

__all__ = ["PlayerProfileRow"]
