"""
Static rules tables shared across the normalizers and the aggregator.
"""

# Skill → governing ability
SKILL_ABILITIES: dict[str, str] = {
    "Acrobatics": "dexterity",
    "Animal Handling": "wisdom",
    "Arcana": "intelligence",
    "Athletics": "strength",
    "Deception": "charisma",
    "History": "intelligence",
    "Insight": "wisdom",
    "Intimidation": "charisma",
    "Investigation": "intelligence",
    "Medicine": "wisdom",
    "Nature": "intelligence",
    "Perception": "wisdom",
    "Performance": "charisma",
    "Persuasion": "charisma",
    "Religion": "intelligence",
    "Sleight of Hand": "dexterity",
    "Stealth": "dexterity",
    "Survival": "wisdom",
}

STANDARD_SKILLS: list[str] = list(SKILL_ABILITIES)

ARTISAN_TOOLS: list[str] = [
    "Alchemist's supplies",
    "Brewer's supplies",
    "Calligrapher's supplies",
    "Carpenter's tools",
    "Cartographer's tools",
    "Cobbler's tools",
    "Cook's utensils",
    "Glassblower's tools",
    "Jeweler's tools",
    "Leatherworker's tools",
    "Mason's tools",
    "Painter's supplies",
    "Potter's tools",
    "Smith's tools",
    "Tinker's tools",
    "Weaver's tools",
    "Woodcarver's tools",
]

STANDARD_TOOLS: list[str] = ARTISAN_TOOLS + [
    "Disguise kit",
    "Forgery kit",
    "Gaming set",
    "Herbalism kit",
    "Musical instrument",
    "Navigator's tools",
    "Poisoner's kit",
    "Thieves' tools",
]

STANDARD_LANGUAGES: list[str] = [
    "Common",
    "Dwarvish",
    "Elvish",
    "Giant",
    "Gnomish",
    "Goblin",
    "Halfling",
    "Orc",
    "Abyssal",
    "Celestial",
    "Draconic",
    "Deep Speech",
    "Infernal",
    "Primordial",
    "Sylvan",
    "Undercommon",
]

# 5etools ability abbreviation → full name
ABILITY_NAMES: dict[str, str] = {
    "str": "strength",
    "dex": "dexterity",
    "con": "constitution",
    "int": "intelligence",
    "wis": "wisdom",
    "cha": "charisma",
}

ALL_ABILITIES: list[str] = list(ABILITY_NAMES.values())

# Placeholder for "any skill/tool/language of your choice"
ANY_OPTION = "any"

# Option lists substituted for the "any" placeholder, per proficiency type
ANY_OPTION_EXPANSIONS: dict[str, list[str]] = {
    "skills": STANDARD_SKILLS,
    "tools": STANDARD_TOOLS,
    "languages": STANDARD_LANGUAGES,
}

# Number words used in free-text proficiency descriptions
NUMBER_WORDS: dict[str, int] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

_SKILL_LOOKUP = {name.lower(): name for name in STANDARD_SKILLS}
_TOOL_LOOKUP = {name.lower(): name for name in STANDARD_TOOLS}
_LANGUAGE_LOOKUP = {name.lower(): name for name in STANDARD_LANGUAGES}


def canonical_skill(name: str) -> str:
    """Return the standard spelling of a skill name (``"sleight of hand"`` → ``"Sleight of Hand"``)."""
    cleaned = name.strip()
    return _SKILL_LOOKUP.get(cleaned.lower(), cleaned.title())


def canonical_tool(name: str) -> str:
    cleaned = name.strip()
    if cleaned.lower() in _TOOL_LOOKUP:
        return _TOOL_LOOKUP[cleaned.lower()]
    return cleaned[:1].upper() + cleaned[1:]


def canonical_language(name: str) -> str:
    cleaned = name.strip()
    return _LANGUAGE_LOOKUP.get(cleaned.lower(), cleaned.title())


__all__ = [
    "ABILITY_NAMES",
    "ALL_ABILITIES",
    "ANY_OPTION",
    "ANY_OPTION_EXPANSIONS",
    "ARTISAN_TOOLS",
    "NUMBER_WORDS",
    "SKILL_ABILITIES",
    "STANDARD_LANGUAGES",
    "STANDARD_SKILLS",
    "STANDARD_TOOLS",
    "canonical_language",
    "canonical_skill",
    "canonical_tool",
]
