"""
Domain models package.

Purpose
-------
Rich domain models for the progression engine. These encapsulate the game
rules, validation and state transitions; database models in
``src.database.models`` are plain storage rows that repositories convert
to and from these objects.

Base Classes
------------
- AggregateRoot: identity plus pending domain events
- DomainEvent: state change notification published after commit
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    validate_not_empty,
    validate_positive,
)
from .cards import (
    CardCatalogue,
    CardCollection,
    CardDefinition,
    CardKind,
    CardRarity,
    CardRecord,
    CardStats,
    SkillCategory,
    StatRules,
    UpgradeCost,
    UpgradeRules,
    can_upgrade,
    upgrade_cost,
)
from .deck import ActiveDeck
from .ledger import MAX_BALANCE, CurrencyKind, CurrencyLedger
from .profile import CardUpgrade, PlayerProfile, PrestigeReset, ProgressionRules, SeasonClaim
from .rank import (
    RankChange,
    RankSnapshot,
    RankState,
    RankTier,
    TierInfo,
    TierTable,
    get_tier_for_trophies,
    prestige_glow_color,
    prestige_label,
    prestige_stars,
)
from .season import SeasonInfo, SeasonRecord, SeasonRewardRules, gem_reward

__all__ = [
    # Base classes
    "AggregateRoot",
    "DomainEvent",
    # Validators
    "validate_positive",
    "validate_not_empty",
    # Ledger
    "CurrencyKind",
    "CurrencyLedger",
    "MAX_BALANCE",
    # Cards
    "CardCatalogue",
    "CardCollection",
    "CardDefinition",
    "CardKind",
    "CardRarity",
    "CardRecord",
    "CardStats",
    "SkillCategory",
    "StatRules",
    "UpgradeCost",
    "UpgradeRules",
    "can_upgrade",
    "upgrade_cost",
    # Deck
    "ActiveDeck",
    # Rank
    "RankChange",
    "RankSnapshot",
    "RankState",
    "RankTier",
    "TierInfo",
    "TierTable",
    "get_tier_for_trophies",
    "prestige_glow_color",
    "prestige_label",
    "prestige_stars",
    # Season
    "SeasonInfo",
    "SeasonRecord",
    "SeasonRewardRules",
    "gem_reward",
    # Profile aggregate
    "PlayerProfile",
    "ProgressionRules",
    "CardUpgrade",
    "PrestigeReset",
    "SeasonClaim",
]
