"""
Card collection domain model.

Purpose
-------
Represent the cards a player owns (characters and skills), the balance
tables that govern upgrading them, and the stats derived from a card's
progression. A card record is created on the first copy a player acquires
and is never deleted.

Rules
-----
- Rarity is ordered ``Common < Rare < Epic < Legendary`` and only increases.
- ``prestige`` increases only on a Legendary card; it is unbounded.
- ``copies`` never goes negative; an upgrade consumes exactly the copies
  listed in the cost table.
- Derived stats are pure functions of ``(kind, rarity, level, prestige)`` and
  are never stored.
- Card ids are validated against the catalogue; unknown ids fail fast.

Usage Example
-------------
>>> catalogue = CardCatalogue.from_config()
>>> rules = UpgradeRules.from_config()
>>> collection = CardCollection(catalogue)
>>> record = collection.add_copies("blaze", 6)
>>> rules.cost_for(record)
UpgradeCost(copies_needed=5, coin_cost=200)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from src.core.config.manager import ConfigManager
from src.core.exceptions import ConfigurationError
from src.domain.models.base import validate_positive
from src.modules.shared.exceptions import (
    InsufficientCopiesError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)


# ============================================================================
# ENUMS
# ============================================================================


class CardRarity(IntEnum):
    """Ordered card quality. Comparison follows upgrade order."""

    COMMON = 0
    RARE = 1
    EPIC = 2
    LEGENDARY = 3

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self is CardRarity.LEGENDARY

    def next(self) -> CardRarity:
        """Next rarity; Legendary stays Legendary."""
        if self.is_terminal:
            return self
        return CardRarity(self.value + 1)

    @classmethod
    def parse(cls, value: Any) -> CardRarity:
        """
        Resolve a rarity from its name ("rare", "Rare") or enum.

        Raises
        ------
        ValidationError
            If the value names no rarity
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().upper() in cls.__members__:
            return cls[value.strip().upper()]
        raise ValidationError("rarity", f"unknown rarity {value!r}")


class CardKind(str, Enum):
    CHARACTER = "character"
    SKILL = "skill"

    @classmethod
    def parse(cls, value: Any) -> CardKind:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError("kind", f"unknown card kind {value!r}") from None


class SkillCategory(str, Enum):
    OFFENSIVE = "offensive"
    DEFENSIVE = "defensive"
    ECONOMIC = "economic"


# ============================================================================
# CATALOGUE
# ============================================================================


@dataclass(frozen=True)
class CardDefinition:
    """Static description of a collectible card."""

    card_id: str
    kind: CardKind
    name: str
    description: str = ""
    category: Optional[SkillCategory] = None


class CardCatalogue:
    """
    Every card that exists in the game, keyed by id.

    Loaded from ``catalogue.characters`` and ``catalogue.skills`` in the
    balance YAML.
    """

    def __init__(self, definitions: Iterable[CardDefinition]) -> None:
        self._cards: Dict[str, CardDefinition] = {}
        for definition in definitions:
            if definition.card_id in self._cards:
                raise ConfigurationError(
                    "catalogue", f"Duplicate card id in catalogue: {definition.card_id}"
                )
            self._cards[definition.card_id] = definition

    @classmethod
    def from_config(cls) -> CardCatalogue:
        """
        Build the catalogue from balance configuration.

        Raises
        ------
        ConfigurationError
            If either card list is missing or an entry is malformed
        """
        characters = ConfigManager.get("catalogue.characters")
        skills = ConfigManager.get("catalogue.skills")
        if not characters or not skills:
            raise ConfigurationError(
                "catalogue", "catalogue.characters and catalogue.skills are required"
            )

        definitions: List[CardDefinition] = []
        try:
            for entry in characters:
                definitions.append(
                    CardDefinition(
                        card_id=str(entry["id"]),
                        kind=CardKind.CHARACTER,
                        name=str(entry.get("name", entry["id"])),
                        description=str(entry.get("description", "")),
                    )
                )
            for entry in skills:
                definitions.append(
                    CardDefinition(
                        card_id=str(entry["id"]),
                        kind=CardKind.SKILL,
                        name=str(entry.get("name", entry["id"])),
                        description=str(entry.get("description", "")),
                        category=SkillCategory(entry["category"]),
                    )
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                "catalogue", f"Malformed catalogue entry: {exc}"
            ) from exc

        return cls(definitions)

    def get(self, card_id: str) -> CardDefinition:
        """
        Raises
        ------
        NotFoundError
            If no card has this id
        """
        definition = self._cards.get(card_id)
        if definition is None:
            raise NotFoundError("Card", card_id)
        return definition

    def characters(self) -> List[CardDefinition]:
        return [d for d in self._cards.values() if d.kind is CardKind.CHARACTER]

    def skills(self, category: Optional[SkillCategory] = None) -> List[CardDefinition]:
        return [
            d
            for d in self._cards.values()
            if d.kind is CardKind.SKILL and (category is None or d.category is category)
        ]

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    def __iter__(self) -> Iterator[CardDefinition]:
        return iter(self._cards.values())

    def __len__(self) -> int:
        return len(self._cards)


# ============================================================================
# BALANCE TABLES
# ============================================================================


@dataclass(frozen=True)
class UpgradeCost:
    copies_needed: int
    coin_cost: int


def _required(key: str) -> Any:
    value = ConfigManager.get(key)
    if value is None:
        raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
    return value


@dataclass(frozen=True)
class UpgradeRules:
    """
    Upgrade cost table.

    Costs are keyed by the card's CURRENT rarity. A Legendary card upgrades
    into its next prestige level for ``prestige_copies`` copies and
    ``prestige_base + prestige_step * prestige`` coins.
    """

    copies_needed: Mapping[CardRarity, int]
    prestige_copies: int
    coin_cost: Mapping[CardKind, Mapping[CardRarity, int]]
    prestige_base: Mapping[CardKind, int]
    prestige_step: Mapping[CardKind, int]
    level_cap: Mapping[CardKind, int]

    @classmethod
    def from_config(cls) -> UpgradeRules:
        """
        Raises
        ------
        ConfigurationError
            If any table entry is missing
        """
        steps = (CardRarity.COMMON, CardRarity.RARE, CardRarity.EPIC)
        copies = {
            rarity: int(_required(f"card_upgrade.copies_needed.{rarity.name.lower()}"))
            for rarity in steps
        }
        coins = {
            kind: {
                rarity: int(
                    _required(f"card_upgrade.coin_cost.{kind.value}.{rarity.name.lower()}")
                )
                for rarity in steps
            }
            for kind in CardKind
        }
        return cls(
            copies_needed=copies,
            prestige_copies=int(_required("card_upgrade.copies_needed.legendary_prestige")),
            coin_cost=coins,
            prestige_base={
                kind: int(_required(f"card_upgrade.prestige_cost.{kind.value}.base"))
                for kind in CardKind
            },
            prestige_step={
                kind: int(_required(f"card_upgrade.prestige_cost.{kind.value}.step"))
                for kind in CardKind
            },
            level_cap={
                kind: int(_required(f"card_upgrade.level_cap.{kind.value}"))
                for kind in CardKind
            },
        )

    def cost(self, kind: CardKind, rarity: CardRarity, prestige: int = 0) -> UpgradeCost:
        if rarity is CardRarity.LEGENDARY:
            return UpgradeCost(
                copies_needed=self.prestige_copies,
                coin_cost=self.prestige_base[kind] + self.prestige_step[kind] * prestige,
            )
        return UpgradeCost(
            copies_needed=self.copies_needed[rarity],
            coin_cost=self.coin_cost[kind][rarity],
        )

    def cost_for(self, record: CardRecord) -> UpgradeCost:
        return self.cost(record.kind, record.rarity, record.prestige)

    def level_cap_for(self, kind: CardKind) -> int:
        return self.level_cap[kind]


@dataclass(frozen=True)
class CardStats:
    """Derived stats for one card. Never persisted."""

    rarity_multiplier: float
    level_multiplier: float
    prestige_multiplier: float
    values: Dict[str, float] = field(default_factory=dict)

    @property
    def total_multiplier(self) -> float:
        return self.rarity_multiplier * self.level_multiplier * self.prestige_multiplier


@dataclass(frozen=True)
class StatRules:
    rarity_step: float
    level_bonus: float
    prestige_bonus: float
    base_stats: Mapping[CardKind, Mapping[str, float]]

    @classmethod
    def from_config(cls) -> StatRules:
        return cls(
            rarity_step=float(ConfigManager.get("card_stats.rarity_step", 0.10)),
            level_bonus=float(ConfigManager.get("card_stats.level_bonus", 0.02)),
            prestige_bonus=float(ConfigManager.get("card_stats.prestige_bonus", 0.05)),
            base_stats={
                CardKind.CHARACTER: {
                    k: float(v)
                    for k, v in ConfigManager.get(
                        "card_stats.character",
                        {"speed": 1.0, "health": 100.0, "damage": 10.0},
                    ).items()
                },
                CardKind.SKILL: {
                    k: float(v)
                    for k, v in ConfigManager.get(
                        "card_stats.skill", {"duration": 3.0, "power": 1.0}
                    ).items()
                },
            },
        )

    def compute(self, record: CardRecord) -> CardStats:
        rarity_mult = 1.0 + self.rarity_step * int(record.rarity)
        level_mult = 1.0 + self.level_bonus * (record.level - 1)
        prestige_mult = 1.0 + self.prestige_bonus * record.prestige
        total = rarity_mult * level_mult * prestige_mult
        return CardStats(
            rarity_multiplier=rarity_mult,
            level_multiplier=level_mult,
            prestige_multiplier=prestige_mult,
            values={
                name: round(base * total, 4)
                for name, base in self.base_stats[record.kind].items()
            },
        )


# ============================================================================
# RECORDS
# ============================================================================


@dataclass
class CardRecord:
    """
    One owned card.

    Raises
    ------
    InvariantViolationError
        If constructed with negative copies, a level below 1, negative
        prestige, or prestige on a card that is not Legendary
    """

    card_id: str
    kind: CardKind
    copies: int = 1
    level: int = 1
    rarity: CardRarity = CardRarity.COMMON
    prestige: int = 0

    def __post_init__(self) -> None:
        self._check_invariants()

    def _check_invariants(self) -> None:
        problems = []
        if self.copies < 0:
            problems.append("copies >= 0")
        if self.level < 1:
            problems.append("level >= 1")
        if self.prestige < 0:
            problems.append("prestige >= 0")
        if self.prestige > 0 and self.rarity is not CardRarity.LEGENDARY:
            problems.append("prestige only on Legendary")
        if problems:
            raise InvariantViolationError(
                "card record " + ", ".join(problems),
                {"card_id": self.card_id, **self.to_dict()},
            )

    def add_copies(self, count: int) -> int:
        validate_positive(count, "count")
        self.copies += count
        return self.copies

    def apply_upgrade(self, cost: UpgradeCost, level_cap: int) -> Tuple[CardRarity, int]:
        """
        Consume copies and advance rarity (or prestige at Legendary).

        The caller has already been paid; this only checks copies again so a
        record can never go negative.

        Returns
        -------
        Tuple[CardRarity, int]
            The rarity and prestige before the upgrade
        """
        if self.copies < cost.copies_needed:
            raise InsufficientCopiesError(self.card_id, cost.copies_needed, self.copies)

        before = (self.rarity, self.prestige)
        self.copies -= cost.copies_needed
        if self.rarity is CardRarity.LEGENDARY:
            self.prestige += 1
        else:
            self.rarity = self.rarity.next()
        self.level = min(self.level + 1, max(level_cap, self.level))
        return before

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "copies": self.copies,
            "level": self.level,
            "rarity": self.rarity.name.lower(),
            "prestige": self.prestige,
        }

    @classmethod
    def from_dict(cls, card_id: str, data: Mapping[str, Any]) -> CardRecord:
        """
        Raises
        ------
        InvariantViolationError
            If the stored record is malformed
        """
        try:
            return cls(
                card_id=card_id,
                kind=CardKind.parse(data["kind"]),
                copies=int(data["copies"]),
                level=int(data["level"]),
                rarity=CardRarity.parse(data["rarity"]),
                prestige=int(data.get("prestige", 0)),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise InvariantViolationError(
                "stored card record is well-formed",
                {"card_id": card_id, "error": str(exc)},
            ) from exc


def upgrade_cost(record: CardRecord, rules: UpgradeRules) -> UpgradeCost:
    """Copies and coins the next upgrade of `record` consumes."""
    return rules.cost_for(record)


def can_upgrade(record: CardRecord, rules: UpgradeRules) -> bool:
    """True iff the record owns enough copies for its next upgrade."""
    return record.copies >= rules.cost_for(record).copies_needed


# ============================================================================
# COLLECTION
# ============================================================================


class CardCollection:
    """
    Typed ``card_id -> CardRecord`` mapping for one player.

    Every id is checked against the catalogue and the stored kind must
    match the catalogue kind.
    """

    def __init__(
        self, catalogue: CardCatalogue, records: Optional[Iterable[CardRecord]] = None
    ) -> None:
        self._catalogue = catalogue
        self._records: Dict[str, CardRecord] = {}
        for record in records or ():
            self._check_known(record)
            if record.card_id in self._records:
                raise InvariantViolationError(
                    "card ids unique in collection", {"card_id": record.card_id}
                )
            self._records[record.card_id] = record

    def _check_known(self, record: CardRecord) -> None:
        if record.card_id not in self._catalogue:
            raise InvariantViolationError(
                "collection ids exist in catalogue", {"card_id": record.card_id}
            )
        expected = self._catalogue.get(record.card_id).kind
        if record.kind is not expected:
            raise InvariantViolationError(
                "collection kind matches catalogue",
                {"card_id": record.card_id, "kind": record.kind.value},
            )

    @property
    def catalogue(self) -> CardCatalogue:
        return self._catalogue

    def get(self, card_id: str) -> Optional[CardRecord]:
        return self._records.get(card_id)

    def require(self, card_id: str) -> CardRecord:
        """
        Raises
        ------
        NotFoundError
            If the player owns no copy of the card
        """
        record = self._records.get(card_id)
        if record is None:
            raise NotFoundError("Card", card_id)
        return record

    def add_copies(self, card_id: str, count: int) -> CardRecord:
        """
        Add copies, creating the record at Common level 1 on first copy.

        Raises
        ------
        NotFoundError
            If the card id is not in the catalogue
        ValidationError
            If count is not positive
        """
        validate_positive(count, "count")
        record = self._records.get(card_id)
        if record is None:
            definition = self._catalogue.get(card_id)
            record = CardRecord(card_id=card_id, kind=definition.kind, copies=count)
            self._records[card_id] = record
        else:
            record.add_copies(count)
        return record

    def records(self) -> List[CardRecord]:
        return list(self._records.values())

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._records

    def __iter__(self) -> Iterator[CardRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {card_id: record.to_dict() for card_id, record in self._records.items()}

    @classmethod
    def from_dict(
        cls, catalogue: CardCatalogue, data: Mapping[str, Mapping[str, Any]]
    ) -> CardCollection:
        return cls(
            catalogue,
            (CardRecord.from_dict(card_id, raw) for card_id, raw in data.items()),
        )
