"""
Season Module
=============

Season calendar, per-player settlement and exactly-once reward claims.
"""

from .service import Clock, SeasonService, utc_now

__all__ = ["SeasonService", "Clock", "utc_now"]
