"""
Tests for ClassNormalizer, feature references and subclass joining.
"""

import pytest

from charforge.models import CasterProgression
from charforge.normalizers import ClassNormalizer, GenericNormalizer
from charforge.normalizers.classes import (
    parse_caster_progression,
    parse_class_feature_ref,
    parse_subclass_feature_ref,
)


FIGHTER = {
    "name": "Fighter",
    "source": "PHB",
    "page": 70,
    "hd": {"number": 1, "faces": 10},
    "proficiency": ["str", "con"],
    "startingProficiencies": {
        "armor": ["light", "medium", "heavy", "{@item shield|phb|shields}"],
        "weapons": ["simple", "martial"],
        "skills": [{"choose": {"from": ["acrobatics", "athletics", "history", "perception"], "count": 2}}],
    },
    "classFeatures": [
        "Fighting Style|Fighter||1",
        "Second Wind|Fighter||1",
        "Action Surge|Fighter||2",
        {"classFeature": "Martial Archetype|Fighter||3", "gainSubclassFeature": True},
        "Broken Reference",
    ],
    "subclassTitle": "Martial Archetype",
}

WIZARD = {
    "name": "Wizard",
    "source": "PHB",
    "hd": {"number": 1, "faces": 6},
    "proficiency": ["int", "wis"],
    "spellcastingAbility": "int",
    "casterProgression": "full",
    "cantripProgression": [3, 3, 3, 4, 4, 4, 4, 4, 4, 5, 5, 5, 5, 5, 5, 5, 5, 5, 5, 5],
    "startingProficiencies": {
        "weapons": ["daggers", "darts", "slings", "quarterstaffs", "light crossbows"],
    },
    "classFeatures": ["Arcane Recovery|Wizard||1"],
}

BARD = {
    "name": "Bard",
    "source": "PHB",
    "casterProgression": "full",
    "startingProficiencies": {"tools": ["Three {@item musical instrument|PHB|musical instruments} of your choice"]},
}

CLASS_FEATURES = [
    {
        "name": "Action Surge",
        "source": "PHB",
        "className": "Fighter",
        "classSource": "PHB",
        "level": 2,
        "entries": ["You can push yourself beyond your normal limits for a moment."],
    },
    {
        "name": "Second Wind",
        "source": "PHB",
        "className": "Fighter",
        "classSource": "PHB",
        "level": 1,
        "entries": ["You have a limited well of stamina."],
    },
]

SUBCLASSES = [
    {
        "name": "Champion",
        "shortName": "Champion",
        "source": "PHB",
        "className": "Fighter",
        "classSource": "PHB",
        "subclassFeatures": [
            "Champion|Fighter||Champion||3",
            "Improved Critical|Fighter||Champion||3",
            "Remarkable Athlete|Fighter||Champion||7",
        ],
    },
    {
        "name": "Echo Knight",
        "shortName": "Echo Knight",
        "source": "EGW",
        "className": "Fighter",
        "classSource": "PHB",
        "subclassFeatures": ["Echo Knight|Fighter||Echo Knight|EGW|3"],
    },
    {
        "name": "Champion",
        "shortName": "Champion",
        "source": "XPHB",
        "className": "Fighter",
        "classSource": "XPHB",
        "subclassFeatures": [],
    },
]

SUBCLASS_FEATURES = [
    {
        "name": "Improved Critical",
        "source": "PHB",
        "className": "Fighter",
        "classSource": "PHB",
        "subclassShortName": "Champion",
        "subclassSource": "PHB",
        "level": 3,
        "entries": ["Your weapon attacks score a critical hit on a roll of 19 or 20."],
    }
]


@pytest.fixture
def normalizer():
    return ClassNormalizer()


class TestReferences:

    def test_class_feature_ref_defaults_source(self):
        ref = parse_class_feature_ref("Action Surge|Fighter||2")
        assert ref == {
            "name": "Action Surge",
            "class_name": "Fighter",
            "class_source": "PHB",
            "level": 2,
            "source": "PHB",
        }

    def test_class_feature_ref_explicit_source(self):
        ref = parse_class_feature_ref("Weapon Mastery|Fighter|XPHB|1|XPHB")
        assert ref["class_source"] == "XPHB"
        assert ref["source"] == "XPHB"

    @pytest.mark.parametrize("ref", ["Too|Short", "Name|Class||21", "Name|Class||x"])
    def test_invalid_class_feature_ref(self, ref):
        assert parse_class_feature_ref(ref) is None

    def test_subclass_feature_ref(self):
        ref = parse_subclass_feature_ref("Echo Knight|Fighter||Echo Knight|EGW|3")
        assert ref["short_name"] == "Echo Knight"
        assert ref["subclass_source"] == "EGW"
        assert ref["source"] == "EGW"
        assert ref["level"] == 3

    @pytest.mark.parametrize("value,expected", [
        ("full", CasterProgression.FULL),
        ("1/2", CasterProgression.HALF),
        ("artificer", CasterProgression.HALF),
        ("1/3", CasterProgression.THIRD),
        ("pact", CasterProgression.PACT),
        (None, None),
        ("weird", None),
    ])
    def test_caster_progression(self, value, expected):
        assert parse_caster_progression(value) == expected


class TestClassNormalizer:

    def test_core_fields(self, normalizer):
        fighter = normalizer.normalize(FIGHTER)
        assert fighter.id == "fighter_phb"
        assert fighter.hit_die == 10
        assert fighter.saving_throws == ["strength", "constitution"]
        assert fighter.caster_progression is None
        assert fighter.subclass_title == "Martial Archetype"

    def test_proficiencies(self, normalizer):
        proficiencies = normalizer.normalize(FIGHTER).proficiencies
        assert proficiencies.armor == ["light", "medium", "heavy", "shields"]
        assert proficiencies.weapons == ["simple", "martial"]
        assert proficiencies.skills.choice.count == 2
        assert proficiencies.skills.choice.from_ == ["Acrobatics", "Athletics", "History", "Perception"]

    def test_tool_prose(self, normalizer):
        tools = normalizer.normalize(BARD).proficiencies.tools
        assert tools.choice.count == 3

    def test_features_joined_with_text(self, normalizer):
        classes = normalizer.normalize_all([FIGHTER], class_features=CLASS_FEATURES)
        features = classes[0].class_features

        assert [(f.name, f.level) for f in features] == [
            ("Fighting Style", 1),
            ("Second Wind", 1),
            ("Action Surge", 2),
            ("Martial Archetype", 3),
        ]
        assert features[2].description.startswith("You can push yourself")
        assert features[0].description == ""
        assert features[3].gains_subclass_feature

    def test_spellcaster(self, normalizer):
        wizard = normalizer.normalize(WIZARD)
        assert wizard.hit_die == 6
        assert wizard.caster_progression == CasterProgression.FULL
        assert wizard.spellcasting_ability == "intelligence"
        assert wizard.cantrip_progression[0] == 3
        assert wizard.proficiencies.armor == []

    def test_default_hit_die(self, normalizer):
        assert normalizer.normalize(BARD).hit_die == 8

    def test_subclasses_matched_by_class_source(self, normalizer):
        fighter = normalizer.normalize_all(
            [FIGHTER], SUBCLASSES, CLASS_FEATURES, SUBCLASS_FEATURES
        )[0]

        assert [(s.name, s.source) for s in fighter.subclasses] == [
            ("Champion", "PHB"),
            ("Echo Knight", "EGW"),
        ]
        champion = fighter.subclasses[0]
        assert champion.id == "fighter-champion_phb"
        assert champion.class_name == "Fighter"
        assert [(f.name, f.level) for f in champion.subclass_features] == [
            ("Champion", 3),
            ("Improved Critical", 3),
            ("Remarkable Athlete", 7),
        ]
        assert "19 or 20" in champion.subclass_features[1].description

        echo = fighter.subclasses[1]
        assert echo.subclass_features[0].source == "EGW"

    def test_bad_class_skipped(self, normalizer):
        classes = normalizer.normalize_all([{"source": "PHB"}, WIZARD])
        assert [c.name for c in classes] == ["Wizard"]


class TestGenericNormalizer:

    def test_spell_record(self):
        spell = GenericNormalizer("spell").normalize({
            "name": "Fireball",
            "source": "PHB",
            "page": 241,
            "level": 3,
            "entries": ["A bright streak flashes to a point you choose. Make a {@dc 15} save."],
        })
        assert spell.id == "fireball_phb"
        assert spell.page == 241
        assert spell.description.endswith("DC 15 save.")
        assert spell.data["level"] == 3

    def test_copy_resolved(self):
        raws = [
            {"name": "Longsword", "source": "PHB", "value": 1500, "weight": 3},
            {"name": "Longsword +1", "source": "DMG", "_copy": {"name": "Longsword", "source": "PHB"}},
        ]
        records = GenericNormalizer("item").normalize_all(raws)
        assert records[1].data["value"] == 1500
        assert "_copy" not in records[1].data

    def test_invalid_skipped(self):
        assert GenericNormalizer("feat").normalize_all([{"name": "No Source"}, 3]) == []
