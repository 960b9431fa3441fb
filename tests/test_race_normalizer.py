"""
Tests for RaceNormalizer and its field parsers.
"""

import logging

import pytest

from charforge.normalizers import RaceNormalizer
from charforge.normalizers.race import (
    fixed_ability_bonuses,
    parse_resistances,
    parse_size,
    parse_speed,
)


DWARF = {
    "name": "Dwarf",
    "source": "PHB",
    "page": 18,
    "size": ["M"],
    "speed": 25,
    "ability": [{"con": 2}],
    "darkvision": 60,
    "resist": ["poison"],
    "languageProficiencies": [{"common": True, "dwarvish": True}],
    "toolProficiencies": [
        {"choose": {"from": ["smith's tools", "brewer's supplies", "mason's tools"]}}
    ],
    "entries": [
        {
            "type": "entries",
            "name": "Dwarven Resilience",
            "entries": ["You have advantage on saving throws against {@condition poisoned|PHB}."],
        },
        "A loose paragraph that is not a trait.",
    ],
}

HALF_ELF = {
    "name": "Half-Elf",
    "source": "PHB",
    "size": "M",
    "speed": {"walk": 30},
    "ability": [{"cha": 2, "choose": {"from": ["str", "dex", "con", "int", "wis"], "count": 2}}],
    "skillProficiencies": [{"any": 2}],
    "entries": [],
}

SUBRACES = [
    {
        "name": "Hill",
        "source": "PHB",
        "raceName": "Dwarf",
        "raceSource": "PHB",
        "ability": [{"wis": 1}],
        "entries": [
            {"type": "entries", "name": "Dwarven Toughness", "entries": ["Your hit point maximum increases by 1."]}
        ],
    },
    {"name": "Mountain", "source": "PHB", "raceName": "Dwarf", "raceSource": "PHB", "ability": [{"str": 2}]},
    {"source": "PHB", "raceName": "Dwarf", "raceSource": "PHB"},
    {"name": "High", "source": "PHB", "raceName": "Elf", "raceSource": "PHB"},
    {"name": "Duergar", "source": "MTF", "raceName": "Dwarf", "raceSource": "PHB"},
]

DWARF_FLUFF = {
    "name": "Dwarf",
    "source": "PHB",
    "entries": ["Bold and hardy, dwarves are known as skilled warriors, miners, and workers of stone."],
}


@pytest.fixture
def normalizer():
    return RaceNormalizer()


class TestFieldParsers:

    @pytest.mark.parametrize("speed,expected", [
        (25, {"walk": 25}),
        (None, {"walk": 30}),
        ({"walk": 30, "fly": {"number": 50, "condition": "(no medium armor)"}}, {"walk": 30, "fly": 50}),
        ({"walk": 25, "swim": True}, {"walk": 25, "swim": 25}),
        ({"climb": 20}, {"climb": 20, "walk": 30}),
        ("fast", {"walk": 30}),
    ])
    def test_parse_speed(self, speed, expected):
        assert parse_speed(speed) == expected

    @pytest.mark.parametrize("size,expected", [
        (["M"], ["Medium"]),
        (["S", "M"], ["Small", "Medium"]),
        ("L", ["Large"]),
        (None, ["Medium"]),
    ])
    def test_parse_size(self, size, expected):
        assert parse_size(size) == expected

    def test_parse_resistances(self):
        resist = ["Poison", {"choose": {"from": ["acid", "cold"]}}, 7]
        assert parse_resistances(resist) == ["poison", "acid or cold"]

    def test_fixed_bonuses_summed(self):
        assert fixed_ability_bonuses([{"str": 2}, {"str": 1, "cha": 1}]) == {"strength": 3, "charisma": 1}


class TestRaceNormalizer:

    def test_basic_fields(self, normalizer):
        race = normalizer.normalize(DWARF)
        assert race.id == "dwarf_phb"
        assert race.page == 18
        assert race.size == ["Medium"]
        assert race.speed == {"walk": 25}
        assert race.ability_bonuses == {"constitution": 2}
        assert race.darkvision == 60
        assert race.resistances == ["poison"]

    def test_proficiencies(self, normalizer):
        race = normalizer.normalize(DWARF)
        assert race.languages.fixed == ["Common", "Dwarvish"]
        assert race.tools.fixed == []
        assert race.tools.choice.from_ == ["Smith's tools", "Brewer's supplies", "Mason's tools"]
        assert race.skills.is_empty()

    def test_traits_from_named_entries(self, normalizer):
        traits = normalizer.normalize(DWARF).traits
        assert [t.name for t in traits] == ["Dwarven Resilience"]
        assert traits[0].description == "You have advantage on saving throws against poisoned."

    def test_ability_choice(self, normalizer):
        race = normalizer.normalize(HALF_ELF)
        assert race.ability_bonuses == {"charisma": 2}
        assert len(race.ability_choices) == 1
        choice = race.ability_choices[0]
        assert choice.type == "choice"
        assert choice.count == 2
        assert "wisdom" in choice.from_
        assert "charisma" not in choice.from_
        assert race.skills.choice.count == 2

    def test_subraces_attached(self, normalizer):
        race = normalizer.normalize(DWARF, SUBRACES)
        assert [s.name for s in race.subraces] == ["Hill", "Mountain", "Duergar"]

        hill = race.subraces[0]
        assert hill.id == "dwarf-hill_phb"
        assert hill.ability_bonuses == {"wisdom": 1}
        assert hill.traits[0].name == "Dwarven Toughness"
        assert race.subraces[2].source == "MTF"

    def test_description_from_fluff(self, normalizer):
        races = normalizer.normalize_all([DWARF], SUBRACES, [DWARF_FLUFF])
        assert races[0].description.startswith("Bold and hardy")

    def test_placeholder_description(self, normalizer):
        assert normalizer.normalize(HALF_ELF).description == "The Half-Elf race."

    def test_copy_race(self, normalizer):
        duergar_like = {
            "name": "Gray Dwarf",
            "source": "HB",
            "_copy": {"name": "Dwarf", "source": "PHB"},
            "speed": 30,
        }
        races = normalizer.normalize_all([DWARF, duergar_like])
        gray = races[1]
        assert gray.id == "gray-dwarf_hb"
        assert gray.speed == {"walk": 30}
        assert gray.darkvision == 60
        assert gray.ability_bonuses == {"constitution": 2}

    def test_bad_record_skipped(self, normalizer, caplog):
        with caplog.at_level(logging.WARNING, logger="charforge"):
            races = normalizer.normalize_all([DWARF, {"name": "Nowhere"}, HALF_ELF])
        assert [r.name for r in races] == ["Dwarf", "Half-Elf"]
        assert "Failed to normalize race 'Nowhere'" in caplog.text
