"""
Level-based class data: features, spell slots, proficiency bonus, ASIs.

Every function here is pure. Levels outside 1-20 never raise; they yield
empty lists, zero slots or the nearest sensible default.
"""

import math

from .models import (
    CasterProgression,
    ClassDefinition,
    ClassFeature,
    PactSlots,
    SubclassDefinition,
)

MAX_LEVEL = 20

# Full-caster slots by character level; columns are spell levels 1-9
FULL_CASTER_SLOTS: list[list[int]] = [
    [2, 0, 0, 0, 0, 0, 0, 0, 0],
    [3, 0, 0, 0, 0, 0, 0, 0, 0],
    [4, 2, 0, 0, 0, 0, 0, 0, 0],
    [4, 3, 0, 0, 0, 0, 0, 0, 0],
    [4, 3, 2, 0, 0, 0, 0, 0, 0],
    [4, 3, 3, 0, 0, 0, 0, 0, 0],
    [4, 3, 3, 1, 0, 0, 0, 0, 0],
    [4, 3, 3, 2, 0, 0, 0, 0, 0],
    [4, 3, 3, 3, 1, 0, 0, 0, 0],
    [4, 3, 3, 3, 2, 0, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 1],
    [4, 3, 3, 3, 3, 1, 1, 1, 1],
    [4, 3, 3, 3, 3, 2, 1, 1, 1],
    [4, 3, 3, 3, 3, 2, 2, 1, 1],
]

HALF_CASTER_COLUMNS = 5
THIRD_CASTER_COLUMNS = 4

# Warlock pact magic by level 1-11; level 11 and up use the last row
PACT_MAGIC_SLOTS: list[tuple[int, int]] = [
    (1, 1),
    (2, 1),
    (2, 2),
    (2, 2),
    (2, 3),
    (2, 3),
    (2, 4),
    (2, 4),
    (2, 5),
    (2, 5),
    (3, 5),
]

STANDARD_ASI_LEVELS = [4, 8, 12, 16, 19]
ASI_LEVEL_OVERRIDES: dict[str, list[int]] = {
    "fighter": [4, 6, 8, 12, 14, 16, 19],
    "rogue": [4, 8, 10, 12, 16, 19],
}

DEFAULT_SUBCLASS_LEVEL = 3
SUBCLASS_LEVEL_OVERRIDES: dict[str, int] = {
    "cleric": 1,
    "sorcerer": 1,
    "warlock": 1,
}


# =============================================================================
# Features
# =============================================================================

def get_features_at_level(class_data: ClassDefinition, level: int) -> list[ClassFeature]:
    """All class features gained at or below ``level``."""
    return [f for f in class_data.class_features if f.level <= level]


def get_new_features_at_level(class_data: ClassDefinition, level: int) -> list[ClassFeature]:
    """Class features gained exactly at ``level``."""
    return [f for f in class_data.class_features if f.level == level]


def get_subclass_features_at_level(subclass: SubclassDefinition, level: int) -> list[ClassFeature]:
    return [f for f in subclass.subclass_features if f.level <= level]


# =============================================================================
# Spell Slots
# =============================================================================

def _full_row(row_level: int) -> list[int]:
    if row_level < 1 or row_level > MAX_LEVEL:
        return [0] * 9
    return list(FULL_CASTER_SLOTS[row_level - 1])


def get_pact_magic_slots(level: int) -> PactSlots:
    if level < 1 or level > MAX_LEVEL:
        return PactSlots()
    count, slot_level = PACT_MAGIC_SLOTS[min(level - 1, len(PACT_MAGIC_SLOTS) - 1)]
    return PactSlots(count=count, level=slot_level)


def get_spell_slots_at_level(
    progression: CasterProgression | str, level: int
) -> list[int] | PactSlots:
    """Spell slots for a caster progression at a character level.

    Full casters get 9 columns, half casters 5 and third casters 4. Pact
    casters get a PactSlots value instead of a list.
    """
    progression = CasterProgression(progression)
    if progression is CasterProgression.PACT:
        return get_pact_magic_slots(level)
    if level < 1 or level > MAX_LEVEL:
        columns = {
            CasterProgression.FULL: 9,
            CasterProgression.HALF: HALF_CASTER_COLUMNS,
            CasterProgression.THIRD: THIRD_CASTER_COLUMNS,
        }[progression]
        return [0] * columns

    if progression is CasterProgression.FULL:
        return _full_row(level)
    if progression is CasterProgression.HALF:
        if level < 2:
            return [0] * HALF_CASTER_COLUMNS
        return _full_row(math.ceil(level / 2))[:HALF_CASTER_COLUMNS]
    if level < 3:
        return [0] * THIRD_CASTER_COLUMNS
    return _full_row(math.ceil(level / 3))[:THIRD_CASTER_COLUMNS]


def get_spell_slots_for_class(class_data: ClassDefinition, level: int) -> list[int] | PactSlots:
    """Dispatch on the class's caster progression; non-casters get an empty list."""
    if class_data.caster_progression is None:
        return []
    return get_spell_slots_at_level(class_data.caster_progression, level)


# =============================================================================
# Other Lookups
# =============================================================================

def get_proficiency_bonus(level: int) -> int:
    if level >= 17:
        return 6
    if level >= 13:
        return 5
    if level >= 9:
        return 4
    if level >= 5:
        return 3
    return 2


def get_asi_levels(class_name: str) -> list[int]:
    return list(ASI_LEVEL_OVERRIDES.get(class_name.strip().lower(), STANDARD_ASI_LEVELS))


def is_asi_level(class_name: str, level: int) -> bool:
    return level in get_asi_levels(class_name)


def get_subclass_level(class_name: str) -> int:
    return SUBCLASS_LEVEL_OVERRIDES.get(class_name.strip().lower(), DEFAULT_SUBCLASS_LEVEL)


def _progression_value(progression: list[int], level: int) -> int:
    if level < 1 or level > len(progression):
        return 0
    return progression[level - 1]


def get_cantrips_known(class_data: ClassDefinition, level: int) -> int:
    return _progression_value(class_data.cantrip_progression, level)


def get_spells_known(class_data: ClassDefinition, level: int) -> int:
    return _progression_value(class_data.spells_known_progression, level)


__all__ = [
    "FULL_CASTER_SLOTS",
    "PACT_MAGIC_SLOTS",
    "get_asi_levels",
    "get_cantrips_known",
    "get_features_at_level",
    "get_new_features_at_level",
    "get_pact_magic_slots",
    "get_proficiency_bonus",
    "get_spell_slots_at_level",
    "get_spell_slots_for_class",
    "get_spells_known",
    "get_subclass_features_at_level",
    "get_subclass_level",
    "is_asi_level",
]
