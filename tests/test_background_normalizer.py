"""
Tests for BackgroundNormalizer.

Tests cover:
- Legacy (prose) and modern (structured) records
- Starting equipment in both shapes
- Suggested characteristics tables
- Variants authored as ``_copy`` records
- Fluff description fallback
- Idempotence and per-record fault isolation
"""

import copy
import logging

import pytest

from charforge.models import SchemaVariant
from charforge.normalizers import BackgroundNormalizer, build_fluff_index, classify_source
from charforge.normalizers.background import is_variant_copy


def _table(label: str, die: str, rows: list[str]) -> dict:
    return {
        "type": "table",
        "colLabels": [f"{{@dice {die}}}", label],
        "rows": [[str(i + 1), text] for i, text in enumerate(rows)],
    }


ACOLYTE_LEGACY = {
    "name": "Acolyte",
    "source": "PHB",
    "page": 127,
    "entries": [
        {
            "type": "list",
            "style": "list-hang-notitle",
            "items": [
                {"type": "item", "name": "Skill Proficiencies:", "entry": "{@skill Insight}, {@skill Religion}"},
                {"type": "item", "name": "Languages:", "entry": "Two of your choice"},
                {"type": "item", "name": "Equipment:", "entry": "A holy symbol, a prayer book"},
            ],
        },
        {
            "type": "entries",
            "name": "Feature: Shelter of the Faithful",
            "entries": ["As an acolyte, you command the respect of those who share your faith."],
        },
        {
            "type": "entries",
            "name": "Suggested Characteristics",
            "entries": [
                "Acolytes are shaped by their experience in temples.",
                _table("Personality Trait", "d8", ["I idolize a particular hero.", "I can find common ground."]),
                _table("Ideal", "d6", ["Tradition.", "Charity."]),
                _table("Bond", "d6", ["I would die to recover a relic."]),
                _table("Flaw", "d6", ["I judge others harshly."]),
            ],
        },
    ],
}

ACOLYTE_MODERN = {
    "name": "Acolyte",
    "source": "XPHB",
    "page": 178,
    "ability": [
        {"choose": {"weighted": {"from": ["int", "wis", "cha"], "weights": [2, 1]}}},
        {"choose": {"weighted": {"from": ["int", "wis", "cha"], "weights": [1, 1, 1]}}},
    ],
    "feats": [{"magic initiate; cleric|xphb": True}],
    "skillProficiencies": [{"insight": True, "religion": True}],
    "toolProficiencies": [{"calligrapher's supplies": True}],
    "startingEquipment": [
        {
            "A": [
                {"item": "calligrapher's supplies|xphb"},
                {"item": "book|xphb", "displayName": "Book (prayers)"},
                {"value": 800},
            ],
            "B": [{"value": 5000}],
        }
    ],
    "entries": ["You devoted yourself to service in a temple."],
}

NOBLE = {
    "name": "Noble",
    "source": "PHB",
    "skillProficiencies": [{"history": True, "persuasion": True}],
    "languageProficiencies": [{"anyStandard": 1}],
    "entries": [
        {
            "type": "entries",
            "name": "Feature: Position of Privilege",
            "entries": ["Thanks to your noble birth, people are inclined to think the best of you."],
        }
    ],
}

KNIGHT = {
    "name": "Knight",
    "source": "PHB",
    "_copy": {
        "name": "Noble",
        "source": "PHB",
        "_mod": {
            "entries": {
                "mode": "replaceArr",
                "replace": "Feature: Position of Privilege",
                "items": {
                    "type": "entries",
                    "name": "Feature: Retainers",
                    "entries": ["You have the service of three retainers loyal to your family."],
                },
            }
        },
    },
}

CRIMINAL = {
    "name": "Criminal",
    "source": "PHB",
    "skillProficiencies": [{"deception": True, "stealth": True}],
    "entries": [
        {
            "type": "entries",
            "name": "Feature: Criminal Contact",
            "entries": ["You have a reliable and trustworthy contact."],
        }
    ],
}

SPY = {
    "name": "Variant Criminal (Spy)",
    "source": "PHB",
    "_copy": {
        "name": "Criminal",
        "source": "PHB",
        "_mod": {
            "entries": {
                "mode": "insertArr",
                "index": 1,
                "items": {
                    "type": "entries",
                    "name": "Variant Feature: Spy",
                    "entries": ["Although your capabilities are not much different, you are a spy."],
                },
            }
        },
    },
}

FAR_TRAVELER = {
    "name": "Far Traveler",
    "source": "SCAG",
    "entries": [
        {
            "type": "list",
            "items": [{"type": "item", "name": "Skill Proficiencies:", "entry": "{@skill Insight}, {@skill Perception}"}],
        }
    ],
}

FAR_TRAVELER_FLUFF = {
    "name": "Far Traveler",
    "source": "SCAG",
    "entries": ["Short.", "Almost all of the common people in Faerun live their whole lives near home."],
}


@pytest.fixture
def normalizer():
    return BackgroundNormalizer()


# ============================================================================
# Legacy Records
# ============================================================================


class TestLegacyBackground:

    def test_identity_fields(self, normalizer):
        background = normalizer.normalize(ACOLYTE_LEGACY)
        assert background.id == "acolyte_phb"
        assert background.name == "Acolyte"
        assert background.source == "PHB"
        assert background.page == 127
        assert background.schema_variant == SchemaVariant.LEGACY

    def test_proficiencies_from_prose(self, normalizer):
        proficiencies = normalizer.normalize(ACOLYTE_LEGACY).proficiencies
        assert proficiencies.skills.fixed == ["Insight", "Religion"]
        assert proficiencies.skills.choice is None
        assert proficiencies.languages.fixed == []
        assert proficiencies.languages.choice.count == 2
        assert proficiencies.languages.choice.from_ == ["any"]
        assert proficiencies.tools.is_empty()

    def test_feature(self, normalizer):
        features = normalizer.normalize(ACOLYTE_LEGACY).features
        assert [f.name for f in features] == ["Shelter of the Faithful"]
        assert "command the respect" in features[0].description

    def test_characteristics(self, normalizer):
        characteristics = normalizer.normalize(ACOLYTE_LEGACY).characteristics
        assert [row.roll for row in characteristics.personality_traits] == ["1", "2"]
        assert characteristics.personality_traits[0].description == "I idolize a particular hero."
        assert characteristics.ideals[1].description == "Charity."
        assert len(characteristics.bonds) == 1
        assert characteristics.flaws[0].description == "I judge others harshly."

    def test_description_skips_mechanics(self, normalizer):
        description = normalizer.normalize(ACOLYTE_LEGACY).description
        assert "Shelter of the Faithful" in description
        assert "Skill Proficiencies" not in description

    def test_flat_equipment_list(self, normalizer):
        raw = {
            "name": "Hermit",
            "source": "PHB",
            "equipment": ["herbalism kit", {"special": "a winter blanket"}, {"value": 500}],
        }
        equipment = normalizer.normalize(raw).starting_equipment
        assert len(equipment) == 1
        entries = equipment[0]["A"]
        assert entries[0].name == "herbalism kit"
        assert entries[0].source == "PHB"
        assert entries[1].name == "a winter blanket"
        assert entries[2].type == "currency"
        assert entries[2].value == 500


# ============================================================================
# Modern Records
# ============================================================================


class TestModernBackground:

    def test_schema_variant(self, normalizer):
        assert classify_source("XPHB") == SchemaVariant.MODERN
        assert normalizer.normalize(ACOLYTE_MODERN).schema_variant == SchemaVariant.MODERN

    def test_structured_proficiencies(self, normalizer):
        proficiencies = normalizer.normalize(ACOLYTE_MODERN).proficiencies
        assert proficiencies.skills.fixed == ["Insight", "Religion"]
        assert proficiencies.tools.fixed == ["Calligrapher's supplies"]

    def test_starting_equipment_options(self, normalizer):
        equipment = normalizer.normalize(ACOLYTE_MODERN).starting_equipment
        assert list(equipment[0]) == ["A", "B"]
        option_a = equipment[0]["A"]
        assert option_a[0].name == "calligrapher's supplies"
        assert option_a[0].source == "XPHB"
        assert option_a[1].name == "Book (prayers)"
        assert option_a[2].type == "currency"
        assert option_a[2].value == 800
        assert equipment[0]["B"][0].value == 5000

    def test_weighted_ability_scores(self, normalizer):
        options = normalizer.normalize(ACOLYTE_MODERN).ability_scores
        assert [o.type for o in options] == ["weighted", "weighted"]
        assert options[0].from_ == ["intelligence", "wisdom", "charisma"]
        assert options[0].weights == [2, 1]
        assert options[1].count == 3

    def test_feats(self, normalizer):
        feats = normalizer.normalize(ACOLYTE_MODERN).feats
        assert len(feats) == 1
        assert feats[0].name == "Magic Initiate; Cleric"
        assert feats[0].source == "XPHB"

    def test_description(self, normalizer):
        background = normalizer.normalize(ACOLYTE_MODERN)
        assert background.description == "You devoted yourself to service in a temple."
        assert background.id == "acolyte_xphb"


# ============================================================================
# Copies and Variants
# ============================================================================


class TestCopiesAndVariants:

    def test_is_variant_copy(self):
        assert is_variant_copy(SPY)
        assert not is_variant_copy(KNIGHT)
        assert not is_variant_copy(CRIMINAL)

    def test_variant_folded_into_base(self, normalizer):
        backgrounds = normalizer.normalize_all([CRIMINAL, SPY])

        assert [b.name for b in backgrounds] == ["Criminal"]
        variants = backgrounds[0].variants
        assert len(variants) == 1
        assert variants[0].name == "Variant Criminal (Spy)"
        assert variants[0].source == "PHB"
        assert [f.name for f in variants[0].features] == ["Spy"]
        assert variants[0].description == "Variant of Criminal."

    def test_variant_without_base_is_standalone(self, normalizer):
        backgrounds = normalizer.normalize_all([SPY])
        assert [b.name for b in backgrounds] == ["Variant Criminal (Spy)"]
        assert backgrounds[0].description == "The Variant Criminal (Spy) background."

    def test_copy_inherits_base_fields(self, normalizer):
        backgrounds = normalizer.normalize_all([NOBLE, KNIGHT])

        knight = next(b for b in backgrounds if b.name == "Knight")
        assert knight.id == "knight_phb"
        assert knight.proficiencies.skills.fixed == ["History", "Persuasion"]
        assert knight.proficiencies.languages.choice.count == 1
        assert [f.name for f in knight.features] == ["Retainers"]

        noble = next(b for b in backgrounds if b.name == "Noble")
        assert [f.name for f in noble.features] == ["Position of Privilege"]
        assert noble.variants == []

    def test_explicit_variants(self, normalizer):
        raw = dict(CRIMINAL, variants=[{
            "name": "Spy",
            "description": "You are a spy.",
            "features": [{"name": "Spy Contact", "description": "A handler."}],
        }])
        variant = normalizer.normalize(raw).variants[0]
        assert variant.source == "PHB"
        assert variant.description == "You are a spy."
        assert variant.features[0].name == "Spy Contact"


# ============================================================================
# Fluff
# ============================================================================


class TestFluff:

    def test_fluff_fills_missing_description(self, normalizer):
        backgrounds = normalizer.normalize_all([FAR_TRAVELER], [FAR_TRAVELER_FLUFF])
        assert backgrounds[0].description.startswith("Almost all of the common people")
        assert len(backgrounds[0].fluff.entries) == 2

    def test_placeholder_without_fluff(self, normalizer):
        background = normalizer.normalize(FAR_TRAVELER)
        assert background.description == "The Far Traveler background."

    def test_inline_fluff_wins(self, normalizer):
        raw = dict(FAR_TRAVELER, fluff={"entries": ["Inline fluff describing far travelers at length."]})
        fluff_index = build_fluff_index([FAR_TRAVELER_FLUFF])
        background = normalizer.normalize(raw, fluff_index)
        assert background.fluff.entries == ["Inline fluff describing far travelers at length."]

    def test_fluff_index_keys(self):
        index = build_fluff_index([FAR_TRAVELER_FLUFF, {"name": "Broken"}, "junk"])
        assert list(index) == [("far traveler", "scag")]


# ============================================================================
# Robustness
# ============================================================================


class TestRobustness:

    def test_idempotent_and_input_untouched(self, normalizer):
        raws = [CRIMINAL, SPY]
        before = copy.deepcopy(raws)

        first = normalizer.normalize_all(raws)
        second = normalizer.normalize_all(raws)

        assert first == second
        assert raws == before

    def test_one_bad_record_does_not_abort_batch(self, normalizer, caplog):
        raws = [
            ACOLYTE_LEGACY,
            ACOLYTE_MODERN,
            {"source": "PHB", "entries": []},
            NOBLE,
            CRIMINAL,
        ]
        with caplog.at_level(logging.WARNING, logger="charforge"):
            backgrounds = normalizer.normalize_all(raws)

        assert len(backgrounds) == 4
        assert "Failed to normalize background" in caplog.text

    @pytest.mark.parametrize("raw", [
        {"name": "Sourceless"},
        {"name": "", "source": "PHB"},
        "not a record",
    ])
    def test_malformed_records_return_none(self, normalizer, raw):
        assert normalizer.normalize(raw) is None
