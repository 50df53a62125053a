"""
Season domain model.

A season record tracks one player's peak trophies for one season and the
one-time gem reward settled from that peak.

Rules
-----
- ``peak_trophies`` only increases.
- The gem reward is computed once (at close or on first claim) and stored;
  later balance-table changes never alter an already settled reward.
- ``claimed`` goes from False to True exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from src.core.config.manager import ConfigManager
from src.core.exceptions import ConfigurationError
from src.modules.shared.exceptions import InvalidOperationError, InvariantViolationError


# ============================================================================
# REWARD FORMULA
# ============================================================================


@dataclass(frozen=True)
class SeasonRewardRules:
    """
    ``gems = floor(peak / divisor) + tier_bonus(peak)``, capped at
    ``max_gems``. Bonus thresholds are checked highest first.
    """

    divisor: int = 100
    max_gems: int = 500
    tier_bonus: Tuple[Tuple[int, int], ...] = ((4500, 50), (3500, 25), (2000, 10))

    @classmethod
    def from_config(cls) -> SeasonRewardRules:
        bonus_raw = ConfigManager.get("season.reward.tier_bonus")
        try:
            bonus = (
                tuple(
                    sorted(
                        ((int(b["min_peak"]), int(b["gems"])) for b in bonus_raw),
                        reverse=True,
                    )
                )
                if bonus_raw
                else cls.tier_bonus
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                "season.reward.tier_bonus", f"Malformed bonus entry: {exc}"
            ) from exc

        divisor = int(ConfigManager.get("season.reward.divisor", cls.divisor))
        if divisor <= 0:
            raise ConfigurationError("season.reward.divisor", "Divisor must be positive")

        return cls(
            divisor=divisor,
            max_gems=int(ConfigManager.get("season.reward.max_gems", cls.max_gems)),
            tier_bonus=bonus,
        )

    def bonus_for(self, peak_trophies: int) -> int:
        for min_peak, gems in self.tier_bonus:
            if peak_trophies >= min_peak:
                return gems
        return 0

    def gem_reward(self, peak_trophies: int) -> int:
        base = max(0, peak_trophies) // self.divisor
        return min(base + self.bonus_for(peak_trophies), self.max_gems)


def gem_reward(peak_trophies: int, rules: Optional[SeasonRewardRules] = None) -> int:
    """Pure, deterministic season reward for a peak trophy count."""
    return (rules or SeasonRewardRules()).gem_reward(peak_trophies)


# ============================================================================
# SEASON RECORD
# ============================================================================


@dataclass
class SeasonRecord:
    season_id: str
    peak_trophies: int = 0
    claimed: bool = False
    gem_reward: Optional[int] = None
    closed: bool = False
    final_tier: Optional[str] = None
    final_prestige: Optional[int] = None

    def __post_init__(self) -> None:
        if self.peak_trophies < 0:
            raise InvariantViolationError(
                "season peak non-negative",
                {"season_id": self.season_id, "peak_trophies": self.peak_trophies},
            )
        if self.claimed and self.gem_reward is None:
            raise InvariantViolationError(
                "claimed season has a settled reward", {"season_id": self.season_id}
            )

    def record_trophies(self, trophies: int) -> bool:
        """Raise the peak watermark; returns True if it moved."""
        if self.closed or trophies <= self.peak_trophies:
            return False
        self.peak_trophies = trophies
        return True

    def settle_reward(self, rules: SeasonRewardRules) -> int:
        """Compute the reward once; later calls return the stored value."""
        if self.gem_reward is None:
            self.gem_reward = rules.gem_reward(self.peak_trophies)
        return self.gem_reward

    def close(self, final_tier: str, final_prestige: int, rules: SeasonRewardRules) -> bool:
        """Freeze the record. Returns False if it was already closed."""
        if self.closed:
            return False
        self.closed = True
        self.final_tier = final_tier
        self.final_prestige = final_prestige
        self.settle_reward(rules)
        return True

    def mark_claimed(self) -> None:
        if self.claimed:
            raise InvalidOperationError(
                "claim_season_reward", f"{self.season_id} reward already claimed"
            )
        if self.gem_reward is None:
            raise InvariantViolationError(
                "reward settled before claim", {"season_id": self.season_id}
            )
        self.claimed = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "peak_trophies": self.peak_trophies,
            "claimed": self.claimed,
            "gem_reward": self.gem_reward,
            "closed": self.closed,
            "final_tier": self.final_tier,
            "final_prestige": self.final_prestige,
        }

    @classmethod
    def from_dict(cls, season_id: str, data: Mapping[str, Any]) -> SeasonRecord:
        try:
            reward = data.get("gem_reward")
            prestige = data.get("final_prestige")
            return cls(
                season_id=season_id,
                peak_trophies=int(data.get("peak_trophies", 0)),
                claimed=bool(data.get("claimed", False)),
                gem_reward=int(reward) if reward is not None else None,
                closed=bool(data.get("closed", False)),
                final_tier=data.get("final_tier"),
                final_prestige=int(prestige) if prestige is not None else None,
            )
        except (TypeError, ValueError) as exc:
            raise InvariantViolationError(
                "stored season record is well-formed",
                {"season_id": season_id, "error": str(exc)},
            ) from exc


# ============================================================================
# SEASON CALENDAR
# ============================================================================


@dataclass(frozen=True)
class SeasonInfo:
    """Calendar entry for the configured current season."""

    season_id: str
    number: int
    name: str
    theme: str
    start_date: datetime
    duration_days: int

    @classmethod
    def from_config(cls) -> SeasonInfo:
        raw = ConfigManager.get("season.current")
        if not raw:
            raise ConfigurationError(
                "season.current", "Required configuration key 'season.current' is missing"
            )
        try:
            start = raw["start_date"]
            if not isinstance(start, datetime):
                start = datetime.fromisoformat(str(start))
            if start.tzinfo is None:
                start = start.replace(tzinfo=timezone.utc)
            return cls(
                season_id=str(raw["season_id"]),
                number=int(raw.get("number", 1)),
                name=str(raw.get("name", raw["season_id"])),
                theme=str(raw.get("theme", "")),
                start_date=start,
                duration_days=int(raw.get("duration_days", 30)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError("season.current", f"Malformed season entry: {exc}") from exc

    @property
    def end_date(self) -> datetime:
        return self.start_date + timedelta(days=self.duration_days)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.start_date <= now < self.end_date

    def has_ended(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.end_date

    def time_remaining(self, now: Optional[datetime] = None) -> timedelta:
        remaining = self.end_date - (now or datetime.now(timezone.utc))
        return max(remaining, timedelta(0))

    def format_time_remaining(self, now: Optional[datetime] = None) -> str:
        remaining = self.time_remaining(now)
        if remaining <= timedelta(0):
            return "Season ended"
        total_minutes = int(remaining.total_seconds() // 60)
        days, rest = divmod(total_minutes, 24 * 60)
        hours, minutes = divmod(rest, 60)
        if days > 0:
            return f"{days}d {hours}h"
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "season_id": self.season_id,
            "number": self.number,
            "name": self.name,
            "theme": self.theme,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_active": self.is_active(now),
            "time_remaining": self.format_time_remaining(now),
        }
