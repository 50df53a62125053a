"""
Unit Tests for Cards and the Upgrade Rules
==========================================

Test Coverage
-------------
- Catalogue loading and lookups
- Upgrade cost table (per rarity, per kind, prestige scaling)
- Upgrade eligibility and record mutation
- Derived stats
- Collection first-copy creation and stored-record validation
"""

import pytest

from src.domain.models.cards import (
    CardCatalogue,
    CardCollection,
    CardKind,
    CardRarity,
    CardRecord,
    SkillCategory,
    StatRules,
    UpgradeCost,
    UpgradeRules,
    can_upgrade,
    upgrade_cost,
)
from src.modules.shared.exceptions import (
    InsufficientCopiesError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def catalogue() -> CardCatalogue:
    return CardCatalogue.from_config()


@pytest.fixture
def upgrade_rules() -> UpgradeRules:
    return UpgradeRules.from_config()


# ============================================================================
# CATALOGUE
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCardCatalogue:
    """Test the card catalogue built from balance tables."""

    def test_catalogue_holds_characters_and_skills(self, catalogue):
        assert len(catalogue.characters()) == 10
        assert len(catalogue.skills()) == 12
        assert len(catalogue) == 22

    def test_skills_filter_by_category(self, catalogue):
        economic = {d.card_id for d in catalogue.skills(SkillCategory.ECONOMIC)}

        assert economic == {"magnet", "double_loot", "steal", "vault_key"}

    def test_get_returns_definition(self, catalogue):
        definition = catalogue.get("agent_zero")

        assert definition.kind is CardKind.CHARACTER
        assert definition.name == "Agent Zero"

    def test_unknown_card_raises_not_found(self, catalogue):
        with pytest.raises(NotFoundError) as exc_info:
            catalogue.get("dragon")

        assert exc_info.value.error_code == "CARD_NOT_FOUND"


# ============================================================================
# UPGRADE COST
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestUpgradeCost:
    """Test the upgrade cost table."""

    @pytest.mark.parametrize(
        "kind, rarity, expected",
        [
            (CardKind.CHARACTER, CardRarity.COMMON, UpgradeCost(5, 200)),
            (CardKind.CHARACTER, CardRarity.RARE, UpgradeCost(10, 500)),
            (CardKind.CHARACTER, CardRarity.EPIC, UpgradeCost(20, 1500)),
            (CardKind.SKILL, CardRarity.COMMON, UpgradeCost(5, 150)),
            (CardKind.SKILL, CardRarity.RARE, UpgradeCost(10, 400)),
            (CardKind.SKILL, CardRarity.EPIC, UpgradeCost(20, 1200)),
        ],
    )
    def test_cost_by_current_rarity(self, upgrade_rules, kind, rarity, expected):
        assert upgrade_rules.cost(kind, rarity) == expected

    def test_legendary_cost_scales_with_prestige(self, upgrade_rules):
        # Arrange
        first = CardRecord("blaze", CardKind.CHARACTER, rarity=CardRarity.LEGENDARY)
        third = CardRecord(
            "blaze", CardKind.CHARACTER, rarity=CardRarity.LEGENDARY, prestige=2
        )

        # Act & Assert
        assert upgrade_cost(first, upgrade_rules) == UpgradeCost(40, 3000)
        assert upgrade_cost(third, upgrade_rules) == UpgradeCost(40, 4000)

    @pytest.mark.parametrize("kind", list(CardKind))
    def test_costs_never_decrease_along_the_upgrade_path(self, upgrade_rules, kind):
        path = [
            upgrade_rules.cost(kind, CardRarity.COMMON),
            upgrade_rules.cost(kind, CardRarity.RARE),
            upgrade_rules.cost(kind, CardRarity.EPIC),
            upgrade_rules.cost(kind, CardRarity.LEGENDARY, 0),
            upgrade_rules.cost(kind, CardRarity.LEGENDARY, 1),
        ]

        for earlier, later in zip(path, path[1:]):
            assert later.copies_needed >= earlier.copies_needed
            assert later.coin_cost >= earlier.coin_cost

    def test_can_upgrade_depends_on_copies_only(self, upgrade_rules):
        assert not can_upgrade(CardRecord("blaze", CardKind.CHARACTER, copies=4), upgrade_rules)
        assert can_upgrade(CardRecord("blaze", CardKind.CHARACTER, copies=5), upgrade_rules)


# ============================================================================
# RECORD MUTATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCardRecordUpgrade:
    """Test applying an already-paid upgrade to a record."""

    def test_upgrade_consumes_copies_and_advances_rarity(self, upgrade_rules):
        # Arrange
        record = CardRecord("blaze", CardKind.CHARACTER, copies=7)
        cost = upgrade_rules.cost_for(record)

        # Act
        before = record.apply_upgrade(cost, upgrade_rules.level_cap_for(record.kind))

        # Assert
        assert before == (CardRarity.COMMON, 0)
        assert record.copies == 2
        assert record.rarity is CardRarity.RARE
        assert record.level == 2
        assert record.prestige == 0

    def test_legendary_upgrade_increments_prestige(self, upgrade_rules):
        record = CardRecord(
            "freeze", CardKind.SKILL, copies=45, level=4, rarity=CardRarity.LEGENDARY
        )

        record.apply_upgrade(upgrade_rules.cost_for(record), 15)

        assert record.rarity is CardRarity.LEGENDARY
        assert record.prestige == 1
        assert record.copies == 5

    def test_level_stops_at_cap(self, upgrade_rules):
        record = CardRecord(
            "freeze", CardKind.SKILL, copies=40, level=15, rarity=CardRarity.LEGENDARY
        )

        record.apply_upgrade(upgrade_rules.cost_for(record), 15)

        assert record.level == 15

    def test_missing_copies_leave_record_unchanged(self, upgrade_rules):
        # Arrange
        record = CardRecord("blaze", CardKind.CHARACTER, copies=4)

        # Act
        with pytest.raises(InsufficientCopiesError) as exc_info:
            record.apply_upgrade(upgrade_rules.cost_for(record), 20)

        # Assert
        assert exc_info.value.shortfall == 1
        assert record == CardRecord("blaze", CardKind.CHARACTER, copies=4)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"copies": -1},
            {"level": 0},
            {"prestige": 1},
            {"prestige": -1, "rarity": CardRarity.LEGENDARY},
        ],
    )
    def test_invalid_record_state_is_an_invariant_violation(self, kwargs):
        with pytest.raises(InvariantViolationError):
            CardRecord("blaze", CardKind.CHARACTER, **kwargs)

    def test_to_dict_uses_lowercase_rarity(self):
        record = CardRecord("shield", CardKind.SKILL, copies=3, rarity=CardRarity.EPIC)

        assert record.to_dict() == {
            "kind": "skill",
            "copies": 3,
            "level": 1,
            "rarity": "epic",
            "prestige": 0,
        }

    def test_from_dict_rejects_unknown_rarity(self):
        with pytest.raises(InvariantViolationError):
            CardRecord.from_dict(
                "blaze",
                {"kind": "character", "copies": 1, "level": 1, "rarity": "mythic"},
            )


# ============================================================================
# STATS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCardStats:
    """Test derived stats."""

    def test_base_card_has_base_stats(self):
        stats = StatRules.from_config().compute(CardRecord("blaze", CardKind.CHARACTER))

        assert stats.total_multiplier == pytest.approx(1.0)
        assert stats.values == {"speed": 1.0, "health": 100.0, "damage": 10.0}

    def test_multipliers_compound(self):
        # Arrange
        record = CardRecord(
            "freeze", CardKind.SKILL, level=3, rarity=CardRarity.LEGENDARY, prestige=2
        )

        # Act
        stats = StatRules.from_config().compute(record)

        # Assert
        assert stats.rarity_multiplier == pytest.approx(1.3)
        assert stats.level_multiplier == pytest.approx(1.04)
        assert stats.prestige_multiplier == pytest.approx(1.1)
        assert stats.values["duration"] == pytest.approx(3.0 * 1.3 * 1.04 * 1.1, abs=1e-4)

    def test_higher_rarity_never_weaker(self):
        rules = StatRules.from_config()
        common = rules.compute(CardRecord("knox", CardKind.CHARACTER))
        rare = rules.compute(CardRecord("knox", CardKind.CHARACTER, rarity=CardRarity.RARE))

        assert rare.values["health"] > common.values["health"]


# ============================================================================
# COLLECTION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCardCollection:
    """Test the per-player collection."""

    def test_first_copy_creates_common_level_one_record(self, catalogue):
        collection = CardCollection(catalogue)

        record = collection.add_copies("blaze", 6)

        assert record == CardRecord("blaze", CardKind.CHARACTER, copies=6)
        assert "blaze" in collection

    def test_more_copies_accumulate(self, catalogue):
        collection = CardCollection(catalogue)
        collection.add_copies("shield", 2)

        record = collection.add_copies("shield", 3)

        assert record.copies == 5
        assert len(collection) == 1

    def test_unknown_card_cannot_be_collected(self, catalogue):
        collection = CardCollection(catalogue)

        with pytest.raises(NotFoundError):
            collection.add_copies("dragon", 1)

        assert len(collection) == 0

    def test_count_must_be_positive(self, catalogue):
        with pytest.raises(ValidationError):
            CardCollection(catalogue).add_copies("blaze", 0)

    def test_require_raises_for_unowned_card(self, catalogue):
        with pytest.raises(NotFoundError):
            CardCollection(catalogue).require("blaze")

    def test_stored_kind_must_match_catalogue(self, catalogue):
        with pytest.raises(InvariantViolationError):
            CardCollection(catalogue, [CardRecord("blaze", CardKind.SKILL)])

    def test_stored_unknown_id_is_an_invariant_violation(self, catalogue):
        with pytest.raises(InvariantViolationError):
            CardCollection.from_dict(
                catalogue,
                {"dragon": {"kind": "character", "copies": 1, "level": 1, "rarity": "common"}},
            )
