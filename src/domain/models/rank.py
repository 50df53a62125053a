"""
Rank domain model.

Purpose
-------
Map cumulative trophies to one of five ordered tiers and track the rank
prestige counter.

Tiers use half-open bands ``[min_trophies, next_min)``; the lower tier wins
exactly at a boundary, so every non-negative trophy count maps to exactly
one tier. Legend is open-ended.

Prestige policy
---------------
Trophies keep climbing inside Legend. Prestige changes only through an
explicit prestige reset, allowed once trophies reach the Legend threshold:
the current trophies are recorded as the peak, trophies return to 0 and
prestige increments by one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from src.core.config.manager import ConfigManager
from src.core.exceptions import ConfigurationError
from src.modules.shared.exceptions import (
    InvalidOperationError,
    InvariantViolationError,
    ValidationError,
)

Color = Tuple[float, float, float]


class RankTier(IntEnum):
    ROOKIE = 0
    SILVER = 1
    GOLD = 2
    DIAMOND = 3
    LEGEND = 4


@dataclass(frozen=True)
class TierInfo:
    """
    One tier band.

    Attributes
    ----------
    tier : RankTier
    name : str
    emoji : str
    color : Color
        RGB in 0..1
    min_trophies : int
        Inclusive lower bound
    max_trophies : Optional[int]
        Exclusive upper bound, ``None`` for the top tier
    """

    tier: RankTier
    name: str
    emoji: str
    color: Color
    min_trophies: int
    max_trophies: Optional[int]

    @property
    def display_name(self) -> str:
        return f"{self.emoji} {self.name}"

    def contains(self, trophies: int) -> bool:
        if trophies < self.min_trophies:
            return False
        return self.max_trophies is None or trophies < self.max_trophies

    def normalized_progress(self, trophies: int) -> float:
        """Progress through this band in ``[0, 1]``; the top tier is always 1."""
        if self.max_trophies is None:
            return 1.0
        span = self.max_trophies - self.min_trophies
        progress = (trophies - self.min_trophies) / span
        return max(0.0, min(1.0, progress))

    def trophies_to_next(self, trophies: int) -> Optional[int]:
        if self.max_trophies is None:
            return None
        return max(0, self.max_trophies - trophies)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.name.lower(),
            "name": self.name,
            "emoji": self.emoji,
            "color": list(self.color),
            "min_trophies": self.min_trophies,
            "max_trophies": self.max_trophies,
        }


class TierTable:
    """
    Ordered tier bands loaded from ``rank.tiers``.

    Raises
    ------
    ConfigurationError
        If the table does not start at 0, is not strictly increasing, or
        does not list exactly one band per tier
    """

    def __init__(self, tiers: Sequence[TierInfo]) -> None:
        if len(tiers) != len(RankTier):
            raise ConfigurationError(
                "rank.tiers", f"Expected {len(RankTier)} tiers, got {len(tiers)}"
            )
        if tiers[0].min_trophies != 0:
            raise ConfigurationError("rank.tiers", "First tier must start at 0 trophies")
        for lower, upper in zip(tiers, tiers[1:]):
            if upper.min_trophies <= lower.min_trophies:
                raise ConfigurationError(
                    "rank.tiers", "Tier thresholds must be strictly increasing"
                )
        self._tiers: Tuple[TierInfo, ...] = tuple(tiers)

    @classmethod
    def from_config(cls) -> TierTable:
        raw = ConfigManager.get("rank.tiers")
        if not raw:
            raise ConfigurationError("rank.tiers", "Required configuration key 'rank.tiers' is missing")

        try:
            mins = [int(entry["min_trophies"]) for entry in raw]
            tiers: List[TierInfo] = []
            for index, entry in enumerate(raw):
                color = tuple(float(c) for c in entry.get("color", (1.0, 1.0, 1.0)))
                tiers.append(
                    TierInfo(
                        tier=RankTier(index),
                        name=str(entry["name"]),
                        emoji=str(entry.get("emoji", "")),
                        color=color,  # type: ignore[arg-type]
                        min_trophies=mins[index],
                        max_trophies=mins[index + 1] if index + 1 < len(mins) else None,
                    )
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError("rank.tiers", f"Malformed tier entry: {exc}") from exc

        return cls(tiers)

    @property
    def legend_threshold(self) -> int:
        return self._tiers[-1].min_trophies

    def for_trophies(self, trophies: int) -> TierInfo:
        """
        Stateless lookup of the tier for a trophy count.

        Raises
        ------
        ValidationError
            If trophies is negative or not an integer
        """
        if isinstance(trophies, bool) or not isinstance(trophies, int) or trophies < 0:
            raise ValidationError("trophies", f"must be a non-negative integer, got {trophies!r}")

        for info in reversed(self._tiers):
            if trophies >= info.min_trophies:
                return info
        # Unreachable: the first band starts at 0
        raise InvariantViolationError("tier table covers all trophies", {"trophies": trophies})

    def get(self, tier: RankTier) -> TierInfo:
        return self._tiers[int(tier)]

    def __iter__(self) -> Iterator[TierInfo]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)


def get_tier_for_trophies(trophies: int, table: Optional[TierTable] = None) -> TierInfo:
    """Pure tier lookup; uses the configured table unless one is given."""
    return (table or TierTable.from_config()).for_trophies(trophies)


# ============================================================================
# PRESTIGE DISPLAY
# ============================================================================


def prestige_stars(level: int, per_group: int = 5) -> str:
    """Stars for a prestige level, grouped in fives: ``"⭐⭐⭐⭐⭐ ⭐⭐"``."""
    if level <= 0:
        return ""
    full_groups, remainder = divmod(level, per_group)
    groups = ["⭐" * per_group] * full_groups
    if remainder:
        groups.append("⭐" * remainder)
    return " ".join(groups)


def prestige_label(level: int) -> str:
    return f"Prestige {level}" if level > 0 else ""


def prestige_glow_color(
    level: int,
    color: Color = (0.65, 0.10, 1.00),
    base_intensity: float = 0.6,
    step: float = 0.04,
) -> Tuple[float, float, float, float]:
    """RGBA glow for prestige badges; fully transparent at prestige 0."""
    if level <= 0:
        return (0.0, 0.0, 0.0, 0.0)
    intensity = min(1.0, base_intensity + step * level)
    return (color[0], color[1], color[2], round(intensity, 4))


# ============================================================================
# RANK STATE
# ============================================================================


@dataclass(frozen=True)
class RankChange:
    """Before/after view of one trophy update."""

    old_trophies: int
    new_trophies: int
    old_tier: TierInfo
    new_tier: TierInfo
    reached_legend: bool

    @property
    def delta_applied(self) -> int:
        return self.new_trophies - self.old_trophies

    @property
    def tier_changed(self) -> bool:
        return self.old_tier.tier is not self.new_tier.tier


class RankState:
    """
    Trophies, derived tier and rank prestige for one player.

    Raises
    ------
    InvariantViolationError
        If constructed with negative trophies or prestige
    """

    __slots__ = ("_table", "_trophies", "_prestige")

    def __init__(self, table: TierTable, trophies: int = 0, prestige: int = 0) -> None:
        if trophies < 0 or prestige < 0:
            raise InvariantViolationError(
                "trophies and prestige non-negative",
                {"trophies": trophies, "prestige": prestige},
            )
        self._table = table
        self._trophies = trophies
        self._prestige = prestige

    @property
    def trophies(self) -> int:
        return self._trophies

    @property
    def prestige(self) -> int:
        return self._prestige

    @property
    def tier(self) -> TierInfo:
        return self._table.for_trophies(self._trophies)

    @property
    def can_prestige(self) -> bool:
        return self._trophies >= self._table.legend_threshold

    def apply_match_result(self, delta: int) -> RankChange:
        """
        Apply a signed trophy delta; trophies never drop below zero.

        Raises
        ------
        ValidationError
            If delta is not an integer
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("trophy_delta", f"must be an integer, got {delta!r}")

        old_trophies, old_tier = self._trophies, self.tier
        self._trophies = max(0, self._trophies + delta)
        threshold = self._table.legend_threshold
        return RankChange(
            old_trophies=old_trophies,
            new_trophies=self._trophies,
            old_tier=old_tier,
            new_tier=self.tier,
            reached_legend=old_trophies < threshold <= self._trophies,
        )

    def execute_prestige(self) -> int:
        """
        Reset trophies to 0 and increment prestige.

        Returns
        -------
        int
            Trophies held at the moment of the reset

        Raises
        ------
        InvalidOperationError
            If trophies are below the Legend threshold
        """
        threshold = self._table.legend_threshold
        if self._trophies < threshold:
            raise InvalidOperationError(
                "execute_prestige",
                f"Reach {threshold:,} trophies to prestige "
                f"({threshold - self._trophies:,} to go)",
            )
        peak = self._trophies
        self._trophies = 0
        self._prestige += 1
        return peak

    def snapshot(self) -> RankSnapshot:
        return RankSnapshot(trophies=self._trophies, tier=self.tier, prestige=self._prestige)


@dataclass(frozen=True)
class RankSnapshot:
    """Immutable view of a rank state returned to callers."""

    trophies: int
    tier: TierInfo
    prestige: int

    @property
    def prestige_stars(self) -> str:
        return prestige_stars(self.prestige)

    @property
    def prestige_label(self) -> str:
        return prestige_label(self.prestige)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trophies": self.trophies,
            "tier": self.tier.to_dict(),
            "prestige": self.prestige,
        }
