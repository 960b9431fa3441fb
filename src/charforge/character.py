"""
Character state touched by the proficiency aggregator.

Every proficiency, language, ability bonus, trait and resistance carries the
source tag that granted it ("Race", "Class", "Background", "Race Choice",
...), so one selection's contributions can be removed without disturbing the
others.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field
from shortuuid import random

from .constants import ABILITY_NAMES, ALL_ABILITIES

logger = logging.getLogger("charforge")

PROFICIENCY_TYPES = ("armor", "weapons", "tools", "skills", "languages", "saving_throws")

CHOICE_SUFFIX = " Choice"


class ProficiencyError(Exception):
    """Exception raised for an unknown proficiency type or category."""
    pass


def normalize_ability(ability: str) -> str:
    """``"str"`` or ``"Strength"`` → ``"strength"``."""
    key = ability.strip().lower()
    return ABILITY_NAMES.get(key, key)


# =============================================================================
# Optional Proficiency Slots
# =============================================================================

class ChoiceSlot(BaseModel):
    """How many picks are allowed, from what, and what has been picked."""
    allowed: int = Field(default=0, ge=0)
    options: list[str] = Field(default_factory=list)
    selected: list[str] = Field(default_factory=list)

    def reset(self) -> None:
        self.allowed = 0
        self.options = []
        self.selected = []


CATEGORIES = ("race", "class", "background")


class OptionalProficiency(ChoiceSlot):
    """Combined slot for one proficiency type plus its per-category slots."""
    model_config = ConfigDict(populate_by_name=True)

    race: ChoiceSlot = Field(default_factory=ChoiceSlot)
    class_: ChoiceSlot = Field(default_factory=ChoiceSlot, alias="class")
    background: ChoiceSlot = Field(default_factory=ChoiceSlot)

    def category(self, name: str) -> ChoiceSlot:
        if name == "race":
            return self.race
        if name == "class":
            return self.class_
        if name == "background":
            return self.background
        raise ProficiencyError(f"Unknown category: {name}")

    def categories(self) -> list[ChoiceSlot]:
        return [self.race, self.class_, self.background]


class OptionalProficiencies(BaseModel):
    skills: OptionalProficiency = Field(default_factory=OptionalProficiency)
    tools: OptionalProficiency = Field(default_factory=OptionalProficiency)
    languages: OptionalProficiency = Field(default_factory=OptionalProficiency)

    def for_type(self, proficiency_type: str) -> OptionalProficiency:
        if proficiency_type == "skills":
            return self.skills
        if proficiency_type == "tools":
            return self.tools
        if proficiency_type == "languages":
            return self.languages
        raise ProficiencyError(f"Unknown optional proficiency type: {proficiency_type}")


# =============================================================================
# Tagged Values
# =============================================================================

class AbilityBonus(BaseModel):
    value: int
    source: str


class Trait(BaseModel):
    name: str
    description: str = ""
    source: str


class Resistance(BaseModel):
    name: str
    source: str


class ClassInfo(BaseModel):
    name: str
    source: str = "PHB"
    level: int = Field(default=1, ge=1, le=20)
    subclass: str | None = None


# =============================================================================
# Character
# =============================================================================

class Character(BaseModel):
    """Character state with per-source bookkeeping."""
    id: str = Field(default_factory=lambda: random(length=8))
    name: str = ""
    allowed_sources: list[str] = Field(default_factory=lambda: ["PHB"])

    race: str | None = None
    subrace: str | None = None
    background: str | None = None
    class_info: ClassInfo | None = None

    ability_scores: dict[str, int] = Field(
        default_factory=lambda: {ability: 10 for ability in ALL_ABILITIES}
    )
    ability_bonuses: dict[str, list[AbilityBonus]] = Field(default_factory=dict)

    proficiencies: dict[str, list[str]] = Field(
        default_factory=lambda: {kind: [] for kind in PROFICIENCY_TYPES}
    )
    proficiency_sources: dict[str, dict[str, list[str]]] = Field(
        default_factory=lambda: {kind: {} for kind in PROFICIENCY_TYPES}
    )
    optional_proficiencies: OptionalProficiencies = Field(default_factory=OptionalProficiencies)

    traits: list[Trait] = Field(default_factory=list)
    resistances: list[Resistance] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Proficiencies
    # ------------------------------------------------------------------

    def _check_type(self, proficiency_type: str) -> None:
        if proficiency_type not in PROFICIENCY_TYPES:
            raise ProficiencyError(f"Unknown proficiency type: {proficiency_type}")

    def add_proficiency(self, proficiency_type: str, name: str, source: str) -> bool:
        """Record ``name`` as granted by ``source``.

        Returns:
            True if the character did not have the proficiency before.
        """
        self._check_type(proficiency_type)
        if not name:
            return False
        names = self.proficiencies.setdefault(proficiency_type, [])
        sources = self.proficiency_sources.setdefault(proficiency_type, {})
        is_new = name not in names
        if is_new:
            names.append(name)
        tags = sources.setdefault(name, [])
        if source not in tags:
            tags.append(source)
        return is_new

    def remove_proficiency_source(self, proficiency_type: str, name: str, source: str) -> bool:
        """Drop one source from a proficiency; the proficiency goes when none remain."""
        self._check_type(proficiency_type)
        sources = self.proficiency_sources.get(proficiency_type, {})
        tags = sources.get(name)
        if not tags or source not in tags:
            return False
        tags.remove(source)
        if not tags:
            del sources[name]
            self.proficiencies[proficiency_type].remove(name)
        return True

    def remove_proficiencies_by_source(self, source: str) -> list[tuple[str, str]]:
        """Remove ``source`` from every proficiency.

        Returns:
            ``(type, name)`` pairs of proficiencies that were removed entirely.
        """
        removed = []
        for proficiency_type in PROFICIENCY_TYPES:
            for name in list(self.proficiency_sources.get(proficiency_type, {})):
                tags = self.proficiency_sources[proficiency_type][name]
                if source in tags and self.remove_proficiency_source(proficiency_type, name, source):
                    if name not in self.proficiencies[proficiency_type]:
                        removed.append((proficiency_type, name))
        return removed

    def has_proficiency(self, proficiency_type: str, name: str) -> bool:
        self._check_type(proficiency_type)
        wanted = name.lower()
        return any(existing.lower() == wanted for existing in self.proficiencies.get(proficiency_type, []))

    def get_proficiency_sources(self, proficiency_type: str, name: str) -> list[str]:
        self._check_type(proficiency_type)
        return list(self.proficiency_sources.get(proficiency_type, {}).get(name, []))

    def is_granted_by_fixed_source(self, proficiency_type: str, name: str) -> bool:
        """True if any non-choice source grants the proficiency."""
        return any(
            not tag.endswith(CHOICE_SUFFIX)
            for tag in self.get_proficiency_sources(proficiency_type, name)
        )

    # ------------------------------------------------------------------
    # Languages (stored as proficiencies)
    # ------------------------------------------------------------------

    @property
    def languages(self) -> list[str]:
        return list(self.proficiencies.get("languages", []))

    def add_language(self, language: str, source: str) -> bool:
        return self.add_proficiency("languages", language, source)

    def clear_languages(self, source: str) -> None:
        for name in list(self.proficiency_sources.get("languages", {})):
            self.remove_proficiency_source("languages", name, source)

    # ------------------------------------------------------------------
    # Ability scores
    # ------------------------------------------------------------------

    def add_ability_bonus(self, ability: str, amount: int, source: str) -> None:
        """Add a bonus; a second bonus from the same source replaces the first."""
        if not ability:
            logger.warning(f"Ignoring ability bonus with no ability (value {amount}, source {source})")
            return
        bonuses = self.ability_bonuses.setdefault(normalize_ability(ability), [])
        for bonus in bonuses:
            if bonus.source == source:
                bonus.value = amount
                return
        bonuses.append(AbilityBonus(value=amount, source=source))

    def clear_ability_bonuses(self, source: str) -> None:
        for ability, bonuses in self.ability_bonuses.items():
            self.ability_bonuses[ability] = [b for b in bonuses if b.source != source]

    def get_ability_bonus(self, ability: str) -> int:
        return sum(b.value for b in self.ability_bonuses.get(normalize_ability(ability), []))

    def get_ability_score(self, ability: str) -> int:
        key = normalize_ability(ability)
        return self.ability_scores.get(key, 10) + self.get_ability_bonus(key)

    def get_ability_modifier(self, ability: str) -> int:
        return (self.get_ability_score(ability) - 10) // 2

    # ------------------------------------------------------------------
    # Traits and resistances
    # ------------------------------------------------------------------

    def add_trait(self, name: str, description: str, source: str) -> None:
        """Record a trait. Repeats are kept; each source clears only its own."""
        self.traits.append(Trait(name=name, description=description, source=source))

    def clear_traits(self, source: str) -> None:
        self.traits = [t for t in self.traits if t.source != source]

    def get_traits(self, name: str) -> list[Trait]:
        return [t for t in self.traits if t.name == name]

    def get_trait_names(self) -> list[str]:
        names: list[str] = []
        for trait in self.traits:
            if trait.name not in names:
                names.append(trait.name)
        return names

    def add_resistance(self, name: str, source: str) -> None:
        if not any(r.name == name and r.source == source for r in self.resistances):
            self.resistances.append(Resistance(name=name, source=source))

    def clear_resistances(self, source: str) -> None:
        self.resistances = [r for r in self.resistances if r.source != source]

    def get_resistances(self) -> list[str]:
        names: list[str] = []
        for resistance in self.resistances:
            if resistance.name not in names:
                names.append(resistance.name)
        return names


__all__ = [
    "AbilityBonus",
    "CATEGORIES",
    "CHOICE_SUFFIX",
    "Character",
    "ChoiceSlot",
    "ClassInfo",
    "OptionalProficiencies",
    "OptionalProficiency",
    "PROFICIENCY_TYPES",
    "ProficiencyError",
    "Resistance",
    "Trait",
    "normalize_ability",
]
