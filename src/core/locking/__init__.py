"""Per-player locking (local asyncio locks or Redis)."""

from src.core.locking.player_lock import PlayerLockService

__all__ = ["PlayerLockService"]
