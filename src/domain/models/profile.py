"""
Player profile aggregate.

Purpose
-------
The consistency boundary for one player's progression: ledger, card
collection, active deck, rank and season records. Every command mutates a
profile through the methods below, which enforce cross-part rules (an
upgrade debits the ledger before touching the card, a deck slot must hold an
owned skill, a claim credits and marks the season together) and record
domain events. Services persist the profile in one transaction and publish
its events after commit.

Usage Example
-------------
>>> rules = ProgressionRules.from_config()
>>> profile = PlayerProfile.new("player-1", rules)
>>> profile.credit(CurrencyKind.SOFT, 500, reason="match_reward")
500
>>> profile.add_card_copies("blaze", 5)
>>> result = profile.upgrade_card("blaze")
>>> [e.event_name for e in profile.clear_domain_events()]
['ledger.credited', 'card.copies_added', 'ledger.debited', 'card.upgraded']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from src.core.config.manager import ConfigManager
from src.domain.models.base import AggregateRoot, validate_not_empty
from src.domain.models.cards import (
    CardCatalogue,
    CardCollection,
    CardKind,
    CardRarity,
    CardRecord,
    CardStats,
    StatRules,
    UpgradeRules,
)
from src.domain.models.deck import ActiveDeck
from src.domain.models.ledger import CurrencyKind, CurrencyLedger
from src.domain.models.rank import RankChange, RankSnapshot, RankState, TierTable
from src.domain.models.season import SeasonRecord, SeasonRewardRules
from src.modules.shared.exceptions import (
    InsufficientCopiesError,
    InvalidOperationError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)


# ============================================================================
# RULE BUNDLE
# ============================================================================


@dataclass(frozen=True)
class ProgressionRules:
    """All balance tables a profile needs, loaded once per service."""

    catalogue: CardCatalogue
    upgrades: UpgradeRules
    stats: StatRules
    tiers: TierTable
    season_rewards: SeasonRewardRules
    deck_capacity: int = 4
    starter_skills: Tuple[str, ...] = ()

    @classmethod
    def from_config(cls) -> ProgressionRules:
        catalogue = CardCatalogue.from_config()
        starters = tuple(ConfigManager.get("deck.starter_skills", []) or ())
        for card_id in starters:
            if catalogue.get(card_id).kind is not CardKind.SKILL:
                raise ValidationError("deck.starter_skills", f"{card_id} is not a skill card")
        return cls(
            catalogue=catalogue,
            upgrades=UpgradeRules.from_config(),
            stats=StatRules.from_config(),
            tiers=TierTable.from_config(),
            season_rewards=SeasonRewardRules.from_config(),
            deck_capacity=int(ConfigManager.get("deck.capacity", 4)),
            starter_skills=starters,
        )


# ============================================================================
# COMMAND OUTCOMES
# ============================================================================


@dataclass(frozen=True)
class CardUpgrade:
    card_id: str
    from_rarity: CardRarity
    to_rarity: CardRarity
    prestige: int
    level: int
    copies_spent: int
    coins_spent: int
    copies_left: int
    stats: CardStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card_id": self.card_id,
            "from_rarity": self.from_rarity.name.lower(),
            "to_rarity": self.to_rarity.name.lower(),
            "prestige": self.prestige,
            "level": self.level,
            "copies_spent": self.copies_spent,
            "coins_spent": self.coins_spent,
            "copies_left": self.copies_left,
            "stats": dict(self.stats.values),
        }


@dataclass(frozen=True)
class SeasonClaim:
    season_id: str
    granted: int
    already_claimed: bool


@dataclass(frozen=True)
class PrestigeReset:
    peak_trophies: int
    new_prestige: int


# ============================================================================
# AGGREGATE
# ============================================================================


class PlayerProfile(AggregateRoot):
    """
    One player's progression state.

    Construct through `new` (first contact) or `from_document` (stored row);
    both validate every part and fail fast on corrupt state.
    """

    def __init__(
        self,
        player_id: str,
        rules: ProgressionRules,
        ledger: CurrencyLedger,
        collection: CardCollection,
        deck: ActiveDeck,
        rank: RankState,
        seasons: Optional[Mapping[str, SeasonRecord]] = None,
        version: int = 0,
    ) -> None:
        validate_not_empty(player_id, "player_id")
        super().__init__(player_id)
        self._rules = rules
        self._ledger = ledger
        self._collection = collection
        self._deck = deck
        self._rank = rank
        self._seasons: Dict[str, SeasonRecord] = dict(seasons or {})
        self.version = version
        self._check_deck_against_collection()

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def new(cls, player_id: str, rules: ProgressionRules) -> PlayerProfile:
        """Fresh profile holding one copy of each starter skill, all in the deck."""
        collection = CardCollection(rules.catalogue)
        for card_id in rules.starter_skills:
            collection.add_copies(card_id, 1)
        deck = ActiveDeck(rules.deck_capacity, list(rules.starter_skills)[: rules.deck_capacity])
        return cls(
            player_id=player_id,
            rules=rules,
            ledger=CurrencyLedger(),
            collection=collection,
            deck=deck,
            rank=RankState(rules.tiers),
        )

    @classmethod
    def from_document(
        cls,
        player_id: str,
        rules: ProgressionRules,
        document: Mapping[str, Any],
        version: int = 0,
    ) -> PlayerProfile:
        """
        Rebuild a profile from its stored layout.

        Raises
        ------
        InvariantViolationError
            On unknown card ids, bad rarity names, negative balances,
            duplicate or non-skill deck entries, or missing sections
        """
        try:
            ledger_doc = document["ledger"]
            rank_doc = document["rank"]
            ledger = CurrencyLedger(
                soft=ledger_doc[CurrencyKind.SOFT.value],
                premium=ledger_doc[CurrencyKind.PREMIUM.value],
            )
            rank = RankState(
                rules.tiers,
                trophies=int(rank_doc["trophies"]),
                prestige=int(rank_doc["prestige"]),
            )
            collection = CardCollection.from_dict(rules.catalogue, document.get("collection") or {})
            deck = ActiveDeck(rules.deck_capacity, document.get("deck") or [])
            seasons = {
                season_id: SeasonRecord.from_dict(season_id, raw)
                for season_id, raw in (document.get("seasons") or {}).items()
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise InvariantViolationError(
                "stored profile is well-formed",
                {"player_id": player_id, "error": f"{type(exc).__name__}: {exc}"},
            ) from exc

        return cls(player_id, rules, ledger, collection, deck, rank, seasons, version)

    def to_document(self) -> Dict[str, Any]:
        return {
            "ledger": self._ledger.to_dict(),
            "collection": self._collection.to_dict(),
            "deck": self._deck.to_list(),
            "rank": {"trophies": self._rank.trophies, "prestige": self._rank.prestige},
            "seasons": {sid: record.to_dict() for sid, record in self._seasons.items()},
        }

    def _check_deck_against_collection(self) -> None:
        for card_id in self._deck.cards:
            record = self._collection.get(card_id)
            if record is None or record.kind is not CardKind.SKILL:
                raise InvariantViolationError(
                    "deck holds owned skill cards",
                    {"player_id": self.id, "card_id": card_id},
                )

    # ------------------------------------------------------------------ #
    # Read access
    # ------------------------------------------------------------------ #

    @property
    def rules(self) -> ProgressionRules:
        return self._rules

    @property
    def ledger(self) -> CurrencyLedger:
        return self._ledger

    @property
    def collection(self) -> CardCollection:
        return self._collection

    @property
    def deck(self) -> ActiveDeck:
        return self._deck

    @property
    def rank(self) -> RankSnapshot:
        return self._rank.snapshot()

    def seasons(self) -> Dict[str, SeasonRecord]:
        return dict(self._seasons)

    def season(self, season_id: str) -> SeasonRecord:
        record = self._seasons.get(season_id)
        if record is None:
            raise NotFoundError("Season", season_id)
        return record

    def card_stats(self, card_id: str) -> CardStats:
        return self._rules.stats.compute(self._collection.require(card_id))

    # ------------------------------------------------------------------ #
    # Ledger
    # ------------------------------------------------------------------ #

    def credit(self, kind: Union[CurrencyKind, str], amount: int, reason: str) -> int:
        currency = CurrencyKind.parse(kind)
        balance = self._ledger.credit(currency, amount)
        self.add_domain_event(
            "ledger.credited",
            {
                "player_id": self.id,
                "currency": currency.value,
                "amount": amount,
                "balance": balance,
                "reason": reason,
            },
        )
        return balance

    def debit(self, kind: Union[CurrencyKind, str], amount: int, reason: str) -> int:
        currency = CurrencyKind.parse(kind)
        balance = self._ledger.debit(currency, amount)
        self.add_domain_event(
            "ledger.debited",
            {
                "player_id": self.id,
                "currency": currency.value,
                "amount": amount,
                "balance": balance,
                "reason": reason,
            },
        )
        return balance

    # ------------------------------------------------------------------ #
    # Cards
    # ------------------------------------------------------------------ #

    def add_card_copies(self, card_id: str, count: int) -> CardRecord:
        created = card_id not in self._collection
        record = self._collection.add_copies(card_id, count)
        self.add_domain_event(
            "card.copies_added",
            {
                "player_id": self.id,
                "card_id": card_id,
                "count": count,
                "copies": record.copies,
                "created": created,
            },
        )
        return record

    def upgrade_card(self, card_id: str) -> CardUpgrade:
        """
        Upgrade one card: pay coins first, then consume copies and advance.

        Raises
        ------
        NotFoundError
            Card not owned
        InsufficientCopiesError
            Fewer copies than the cost table requires
        InsufficientFundsError
            Coin balance below the cost; nothing changes
        """
        record = self._collection.require(card_id)
        cost = self._rules.upgrades.cost_for(record)

        if record.copies < cost.copies_needed:
            raise InsufficientCopiesError(card_id, cost.copies_needed, record.copies)

        self.debit(CurrencyKind.SOFT, cost.coin_cost, reason=f"upgrade:{card_id}")

        from_rarity, _ = record.apply_upgrade(
            cost, self._rules.upgrades.level_cap_for(record.kind)
        )
        upgrade = CardUpgrade(
            card_id=card_id,
            from_rarity=from_rarity,
            to_rarity=record.rarity,
            prestige=record.prestige,
            level=record.level,
            copies_spent=cost.copies_needed,
            coins_spent=cost.coin_cost,
            copies_left=record.copies,
            stats=self._rules.stats.compute(record),
        )
        self.add_domain_event("card.upgraded", {"player_id": self.id, **upgrade.to_dict()})
        return upgrade

    # ------------------------------------------------------------------ #
    # Deck
    # ------------------------------------------------------------------ #

    def toggle_deck_slot(self, card_id: str) -> Tuple[bool, int]:
        added, slot = self._deck.toggle(card_id, self._collection)
        self.add_domain_event(
            "deck.changed",
            {
                "player_id": self.id,
                "card_id": card_id,
                "added": added,
                "slot": slot,
                "slots": self._deck.to_list(),
            },
        )
        return added, slot

    # ------------------------------------------------------------------ #
    # Rank
    # ------------------------------------------------------------------ #

    def apply_match_result(self, delta: int, season_id: Optional[str] = None) -> RankChange:
        """
        Apply a trophy delta and raise the given season's peak watermark.

        The season record is created on first match of the season.
        """
        change = self._rank.apply_match_result(delta)
        self.add_domain_event(
            "rank.changed",
            {
                "player_id": self.id,
                "delta": delta,
                "old_trophies": change.old_trophies,
                "trophies": change.new_trophies,
                "tier": change.new_tier.name,
                "prestige": self._rank.prestige,
            },
        )
        if change.tier_changed:
            self.add_domain_event(
                "rank.tier_changed",
                {
                    "player_id": self.id,
                    "old_tier": change.old_tier.name,
                    "new_tier": change.new_tier.name,
                    "promoted": change.new_tier.tier > change.old_tier.tier,
                },
            )
        if change.reached_legend:
            self.add_domain_event(
                "rank.prestige_available",
                {
                    "player_id": self.id,
                    "trophies": change.new_trophies,
                    "prestige": self._rank.prestige,
                },
            )

        if season_id is not None:
            record = self._seasons.get(season_id)
            if record is None:
                record = SeasonRecord(season_id=season_id)
                self._seasons[season_id] = record
            if record.record_trophies(change.new_trophies):
                self.add_domain_event(
                    "season.peak_updated",
                    {
                        "player_id": self.id,
                        "season_id": season_id,
                        "peak_trophies": record.peak_trophies,
                    },
                )
        return change

    def execute_prestige(self) -> PrestigeReset:
        peak = self._rank.execute_prestige()
        reset = PrestigeReset(peak_trophies=peak, new_prestige=self._rank.prestige)
        self.add_domain_event(
            "rank.prestige_completed",
            {
                "player_id": self.id,
                "peak_trophies": peak,
                "prestige": reset.new_prestige,
            },
        )
        return reset

    # ------------------------------------------------------------------ #
    # Seasons
    # ------------------------------------------------------------------ #

    def close_season(self, season_id: str, season_open: bool = False) -> bool:
        """
        Freeze a season record; returns False when it was already closed.

        Raises
        ------
        NotFoundError
            No record for the season
        InvalidOperationError
            The season is still running on the calendar
        """
        record = self.season(season_id)
        if season_open and not record.closed:
            raise InvalidOperationError(
                "close_season", f"Season {season_id} is still in progress"
            )
        closed = record.close(
            final_tier=self._rank.tier.name,
            final_prestige=self._rank.prestige,
            rules=self._rules.season_rewards,
        )
        if closed:
            self.add_domain_event(
                "season.closed",
                {
                    "player_id": self.id,
                    "season_id": season_id,
                    "peak_trophies": record.peak_trophies,
                    "gem_reward": record.gem_reward,
                    "final_tier": record.final_tier,
                    "final_prestige": record.final_prestige,
                },
            )
        return closed

    def claim_season_reward(self, season_id: str, season_open: bool) -> SeasonClaim:
        """
        Credit a season's gem reward exactly once.

        A repeated claim is a success carrying the stored reward. An ended
        season that was never explicitly closed is closed here.

        Raises
        ------
        NotFoundError
            No record for the season
        InvalidOperationError
            The season is still open
        """
        record = self.season(season_id)
        if record.claimed:
            return SeasonClaim(season_id, record.gem_reward or 0, already_claimed=True)

        if not record.closed:
            if season_open:
                raise InvalidOperationError(
                    "claim_season_reward", f"Season {season_id} is still in progress"
                )
            self.close_season(season_id)

        reward = record.settle_reward(self._rules.season_rewards)
        if reward > 0:
            self.credit(CurrencyKind.PREMIUM, reward, reason=f"season:{season_id}")
        record.mark_claimed()
        self.add_domain_event(
            "season.reward_granted",
            {"player_id": self.id, "season_id": season_id, "gem_reward": reward},
        )
        return SeasonClaim(season_id, reward, already_claimed=False)

    def __repr__(self) -> str:
        return (
            f"PlayerProfile(id={self.id!r}, ledger={self._ledger!r}, "
            f"cards={len(self._collection)}, trophies={self._rank.trophies})"
        )
