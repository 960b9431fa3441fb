"""
ProficiencyAggregator - merges race, class and background grants into a Character.

Each selection (race, class, background) contributes a ProficiencyGrant:
fixed proficiencies, languages, ability bonuses, traits, resistances and
optional choices. Fixed contributions are tagged with the category's source
tag; user picks from a choice slot are tagged "<Tag> Choice". Changing a
selection clears everything under both tags and reapplies the new grant,
keeping prior picks that the new grant still offers.

Invariant after every public operation, per proficiency type and per
category slot: ``selected ⊆ options`` and ``len(selected) <= allowed``.
"""

import logging
from typing import Callable

from pydantic import BaseModel, Field

from .character import (
    CATEGORIES,
    CHOICE_SUFFIX,
    Character,
    ChoiceSlot,
    ProficiencyError,
)
from .constants import ANY_OPTION, ANY_OPTION_EXPANSIONS
from .models import (
    ClassDefinition,
    NormalizedBackground,
    ProficiencyChoice,
    ProficiencySet,
    RaceDefinition,
    SubclassDefinition,
    SubraceDefinition,
)
from .progression import get_features_at_level, get_subclass_features_at_level

logger = logging.getLogger("charforge")

CHOICE_TYPES = ("skills", "tools", "languages")

CATEGORY_TAGS: dict[str, str] = {
    "race": "Race",
    "class": "Class",
    "background": "Background",
}
SUBCLASS_TAG = "Subclass"

ChangeCallback = Callable[[Character, str], None]


def _union(*lists: list[str]) -> list[str]:
    result: list[str] = []
    for values in lists:
        for value in values:
            if value not in result:
                result.append(value)
    return result


def choice_tag(tag: str) -> str:
    return f"{tag}{CHOICE_SUFFIX}"


class GrantedTrait(BaseModel):
    name: str
    description: str = ""


class ProficiencyGrant(BaseModel):
    """Everything one selection contributes to a character."""
    skills: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    armor: list[str] = Field(default_factory=list)
    weapons: list[str] = Field(default_factory=list)
    saving_throws: list[str] = Field(default_factory=list)
    choices: dict[str, ProficiencyChoice] = Field(
        default_factory=dict, description="Optional picks keyed by skills/tools/languages"
    )
    ability_bonuses: dict[str, int] = Field(default_factory=dict)
    traits: list[GrantedTrait] = Field(default_factory=list)
    resistances: list[str] = Field(default_factory=list)


# =============================================================================
# Grant Builders
# =============================================================================

def expand_choice(choice: ProficiencyChoice | None, proficiency_type: str) -> ProficiencyChoice | None:
    """Replace the "any" placeholder with the standard options for the type."""
    if choice is None or choice.count <= 0:
        return None
    options: list[str] = []
    for option in choice.from_:
        if option.lower() == ANY_OPTION:
            options = _union(options, ANY_OPTION_EXPANSIONS[proficiency_type])
        else:
            options = _union(options, [option])
    return ProficiencyChoice(count=choice.count, from_=options)


def _add_set(grant: ProficiencyGrant, proficiency_type: str, value: ProficiencySet) -> None:
    setattr(grant, proficiency_type, _union(getattr(grant, proficiency_type), value.fixed))
    choice = expand_choice(value.choice, proficiency_type)
    if choice is None:
        return
    existing = grant.choices.get(proficiency_type)
    if existing is not None:
        choice = ProficiencyChoice(
            count=existing.count + choice.count, from_=_union(existing.from_, choice.from_)
        )
    grant.choices[proficiency_type] = choice


def grant_from_background(background: NormalizedBackground) -> ProficiencyGrant:
    """Grant for a background; only ``fixed`` ability options become bonuses."""
    grant = ProficiencyGrant()
    _add_set(grant, "skills", background.proficiencies.skills)
    _add_set(grant, "tools", background.proficiencies.tools)
    _add_set(grant, "languages", background.proficiencies.languages)
    for option in background.ability_scores:
        if option.type == "fixed":
            for ability, amount in option.bonuses.items():
                grant.ability_bonuses[ability] = grant.ability_bonuses.get(ability, 0) + amount
    grant.traits = [
        GrantedTrait(name=feature.name, description=feature.description)
        for feature in background.features
    ]
    return grant


def grant_from_race(race: RaceDefinition, subrace: SubraceDefinition | None = None) -> ProficiencyGrant:
    grant = ProficiencyGrant()
    _add_set(grant, "skills", race.skills)
    _add_set(grant, "tools", race.tools)
    _add_set(grant, "languages", race.languages)

    bonuses = dict(race.ability_bonuses)
    traits = list(race.traits)
    if subrace is not None:
        for ability, amount in subrace.ability_bonuses.items():
            bonuses[ability] = bonuses.get(ability, 0) + amount
        traits.extend(subrace.traits)
    grant.ability_bonuses = bonuses
    grant.traits = [GrantedTrait(name=t.name, description=t.description) for t in traits]
    grant.resistances = list(race.resistances)
    return grant


def grant_from_class(class_data: ClassDefinition, level: int = 1) -> ProficiencyGrant:
    """Starting proficiencies plus every class feature up to ``level``."""
    grant = ProficiencyGrant(
        armor=list(class_data.proficiencies.armor),
        weapons=list(class_data.proficiencies.weapons),
        saving_throws=list(class_data.saving_throws),
    )
    _add_set(grant, "skills", class_data.proficiencies.skills)
    _add_set(grant, "tools", class_data.proficiencies.tools)
    grant.traits = [
        GrantedTrait(name=feature.name, description=feature.description)
        for feature in get_features_at_level(class_data, level)
    ]
    return grant


def grant_from_subclass(subclass: SubclassDefinition, level: int) -> ProficiencyGrant:
    return ProficiencyGrant(traits=[
        GrantedTrait(name=feature.name, description=feature.description)
        for feature in get_subclass_features_at_level(subclass, level)
    ])


# =============================================================================
# Aggregator
# =============================================================================

class ProficiencyAggregator:
    """
    Applies grants to a character and maintains its optional choice slots.

    Usage:
        aggregator = ProficiencyAggregator(on_change=refresh_view)
        aggregator.change_selection(character, "background", grant_from_background(acolyte))
        aggregator.select_optional(character, "skills", "class", "Athletics")
    """

    def __init__(self, on_change: ChangeCallback | None = None):
        self.on_change = on_change

    @staticmethod
    def _tag(category: str) -> str:
        try:
            return CATEGORY_TAGS[category]
        except KeyError:
            raise ProficiencyError(f"Unknown category: {category}") from None

    @staticmethod
    def _slot(character: Character, proficiency_type: str, category: str) -> ChoiceSlot:
        return character.optional_proficiencies.for_type(proficiency_type).category(category)

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def apply_grant(
        self,
        character: Character,
        source_tag: str,
        grant: ProficiencyGrant,
        category: str | None = None,
    ) -> None:
        """Add a grant's contributions under ``source_tag``.

        Choices merge into the slots of ``category`` (defaults to the
        category whose tag is ``source_tag``).
        """
        if category is None:
            category = next((c for c, t in CATEGORY_TAGS.items() if t == source_tag), None)

        for proficiency_type in ("armor", "weapons", "saving_throws", "tools", "languages"):
            for name in getattr(grant, proficiency_type):
                character.add_proficiency(proficiency_type, name, source_tag)
        for name in grant.skills:
            character.add_proficiency("skills", name, source_tag)
            self._refund(character, "skills", name)

        for ability, amount in grant.ability_bonuses.items():
            character.add_ability_bonus(ability, amount, source_tag)
        for trait in grant.traits:
            character.add_trait(trait.name, trait.description, source_tag)
        for resistance in grant.resistances:
            character.add_resistance(resistance, source_tag)

        if category is not None:
            for proficiency_type, choice in grant.choices.items():
                if proficiency_type not in CHOICE_TYPES:
                    raise ProficiencyError(f"Unknown optional proficiency type: {proficiency_type}")
                slot = self._slot(character, proficiency_type, category)
                slot.allowed += choice.count
                slot.options = _union(slot.options, choice.from_)
                slot.selected = [s for s in slot.selected if s in slot.options][:slot.allowed]
        elif grant.choices:
            logger.debug(f"Ignoring choices of grant tagged '{source_tag}' with no category")

        self.recompute_combined(character)

    def recompute_combined(self, character: Character) -> None:
        """Rebuild each type's combined slot from its category slots."""
        for proficiency_type in CHOICE_TYPES:
            optional = character.optional_proficiencies.for_type(proficiency_type)
            slots = optional.categories()
            optional.allowed = sum(slot.allowed for slot in slots)
            optional.options = _union(*(slot.options for slot in slots))
            selected = _union(*(slot.selected for slot in slots))
            optional.selected = [s for s in selected if s in optional.options][:optional.allowed]

    def change_selection(
        self,
        character: Character,
        category: str,
        grant: ProficiencyGrant,
        subclass_grant: ProficiencyGrant | None = None,
    ) -> None:
        """Replace a category's contributions with ``grant``.

        Picks made under the old grant survive when the new grant still
        offers them, up to its allowance; other picks are dropped.
        """
        tag = self._tag(category)

        remembered = {
            proficiency_type: list(self._slot(character, proficiency_type, category).selected)
            for proficiency_type in CHOICE_TYPES
        }

        tags = [tag, choice_tag(tag)]
        if category == "class":
            tags.append(SUBCLASS_TAG)
        for source in tags:
            character.remove_proficiencies_by_source(source)
            character.clear_traits(source)
            character.clear_ability_bonuses(source)
            character.clear_resistances(source)
            character.clear_languages(source)

        for proficiency_type in CHOICE_TYPES:
            self._slot(character, proficiency_type, category).reset()

        self.apply_grant(character, tag, grant, category)
        if subclass_grant is not None:
            self.apply_grant(character, SUBCLASS_TAG, subclass_grant, category)

        for proficiency_type, previous in remembered.items():
            slot = self._slot(character, proficiency_type, category)
            for name in previous:
                if len(slot.selected) >= slot.allowed:
                    break
                if name not in slot.options or name in slot.selected:
                    continue
                if character.is_granted_by_fixed_source(proficiency_type, name):
                    continue
                slot.selected.append(name)
                character.add_proficiency(proficiency_type, name, choice_tag(tag))

        self.recompute_combined(character)
        logger.debug(f"Reapplied {category} grant for character {character.id}")
        if self.on_change is not None:
            self.on_change(character, category)

    # ------------------------------------------------------------------
    # Optional picks
    # ------------------------------------------------------------------

    def available_options(self, character: Character, proficiency_type: str, category: str) -> list[str]:
        """Options still pickable in a category slot."""
        slot = self._slot(character, proficiency_type, category)
        taken = character.optional_proficiencies.for_type(proficiency_type).selected
        return [
            option for option in slot.options
            if option not in slot.selected
            and option not in taken
            and not character.is_granted_by_fixed_source(proficiency_type, option)
        ]

    def select_optional(self, character: Character, proficiency_type: str, category: str, name: str) -> bool:
        slot = self._slot(character, proficiency_type, category)
        if name in slot.selected or len(slot.selected) >= slot.allowed or name not in slot.options:
            return False
        if name not in self.available_options(character, proficiency_type, category):
            return False
        slot.selected.append(name)
        character.add_proficiency(proficiency_type, name, choice_tag(self._tag(category)))
        self.recompute_combined(character)
        return True

    def deselect_optional(self, character: Character, proficiency_type: str, category: str, name: str) -> bool:
        slot = self._slot(character, proficiency_type, category)
        if name not in slot.selected:
            return False
        slot.selected.remove(name)
        character.remove_proficiency_source(proficiency_type, name, choice_tag(self._tag(category)))
        self.recompute_combined(character)
        return True

    def _refund(self, character: Character, proficiency_type: str, name: str) -> None:
        """Free a pick that a fixed grant has made redundant."""
        for category in CATEGORIES:
            slot = self._slot(character, proficiency_type, category)
            if name in slot.selected:
                slot.selected.remove(name)
                character.remove_proficiency_source(
                    proficiency_type, name, choice_tag(CATEGORY_TAGS[category])
                )
                logger.debug(f"Refunded {category} pick '{name}' now granted directly")


__all__ = [
    "CATEGORY_TAGS",
    "GrantedTrait",
    "ProficiencyAggregator",
    "ProficiencyGrant",
    "SUBCLASS_TAG",
    "choice_tag",
    "expand_choice",
    "grant_from_background",
    "grant_from_class",
    "grant_from_race",
    "grant_from_subclass",
]
