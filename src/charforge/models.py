"""
Data models for normalized rules content.

Raw 5etools records vary in shape between source books and editions; the
models here are the single canonical shape every normalizer produces and
every downstream consumer (aggregator, progression resolver, reference
resolver) reads.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class SchemaVariant(str, Enum):
    """Which generation of the 5etools schema a record was authored in."""
    LEGACY = "legacy"
    MODERN = "modern"


class CasterProgression(str, Enum):
    """Spell-slot growth curve of a class."""
    FULL = "full"
    HALF = "half"
    THIRD = "third"
    PACT = "pact"


class ProficiencyType(str, Enum):
    """Proficiency types that support optional choices."""
    SKILLS = "skills"
    TOOLS = "tools"
    LANGUAGES = "languages"


# =============================================================================
# Source Models
# =============================================================================

class SourceContent(BaseModel):
    """One table-of-contents section of a source book."""
    name: str = ""
    headers: list[str] = Field(default_factory=list)


class Source(BaseModel):
    """A rulebook or content pack that gates which entities are visible."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Uppercase source code, e.g. 'PHB'")
    name: str
    abbreviation: str
    group: str = Field(default="supplement", description="core, setting, supplement, ...")
    is_core: bool = False
    version: str | None = None
    has_errata: bool = False
    target_language: str = "en"
    contents: list[SourceContent] = Field(default_factory=list)
    is_default: bool = False


# =============================================================================
# Proficiency Models
# =============================================================================

class ProficiencyChoice(BaseModel):
    """An optional proficiency pick: choose ``count`` names from ``from``."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["choice"] = "choice"
    count: int = Field(default=1, ge=0)
    from_: list[str] = Field(default_factory=list, alias="from")


class ProficiencySet(BaseModel):
    """Fixed proficiencies plus at most one choice descriptor."""
    fixed: list[str] = Field(default_factory=list)
    choice: ProficiencyChoice | None = None

    def is_empty(self) -> bool:
        return not self.fixed and self.choice is None


class BackgroundProficiencies(BaseModel):
    skills: ProficiencySet = Field(default_factory=ProficiencySet)
    tools: ProficiencySet = Field(default_factory=ProficiencySet)
    languages: ProficiencySet = Field(default_factory=ProficiencySet)
    expertise: list[str] = Field(default_factory=list)


# =============================================================================
# Background Models
# =============================================================================

class EquipmentEntry(BaseModel):
    """A single item or coin amount inside a starting-equipment option."""
    type: Literal["item", "currency"]
    name: str | None = None
    source: str | None = None
    quantity: int = 1
    value: int | None = Field(default=None, description="Currency value in copper pieces")


class Feature(BaseModel):
    name: str
    description: str = ""
    requirements: str | None = None


class CharacteristicRow(BaseModel):
    roll: str
    description: str


class Characteristics(BaseModel):
    """Suggested personality tables, each an ordered list of d-rolls."""
    personality_traits: list[CharacteristicRow] = Field(default_factory=list)
    ideals: list[CharacteristicRow] = Field(default_factory=list)
    bonds: list[CharacteristicRow] = Field(default_factory=list)
    flaws: list[CharacteristicRow] = Field(default_factory=list)


class Variant(BaseModel):
    name: str
    source: str
    description: str = ""
    features: list[Feature] = Field(default_factory=list)


class Fluff(BaseModel):
    entries: list[str] = Field(default_factory=list)
    images: list[dict[str, Any]] = Field(default_factory=list)


class AbilityScoreOption(BaseModel):
    """One way a background or race adjusts ability scores.

    ``fixed`` options carry ``bonuses``; ``choice`` options pick ``count``
    abilities from ``from`` for ``amount`` each; ``weighted`` options
    distribute ``weights`` across abilities in ``from``.
    """
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["fixed", "choice", "weighted"]
    bonuses: dict[str, int] = Field(default_factory=dict)
    from_: list[str] = Field(default_factory=list, alias="from")
    count: int = 0
    amount: int = 1
    weights: list[int] = Field(default_factory=list)


class FeatGrant(BaseModel):
    name: str
    source: str = "PHB"
    required: bool = True


class NormalizedBackground(BaseModel):
    """Canonical background record."""
    id: str
    name: str
    source: str
    page: int | None = None
    schema_variant: SchemaVariant = SchemaVariant.LEGACY
    description: str = ""
    proficiencies: BackgroundProficiencies = Field(default_factory=BackgroundProficiencies)
    starting_equipment: list[dict[str, list[EquipmentEntry]]] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)
    characteristics: Characteristics = Field(default_factory=Characteristics)
    variants: list[Variant] = Field(default_factory=list)
    fluff: Fluff = Field(default_factory=Fluff)
    ability_scores: list[AbilityScoreOption] = Field(default_factory=list)
    feats: list[FeatGrant] = Field(default_factory=list)


# =============================================================================
# Race Models
# =============================================================================

class RaceTrait(BaseModel):
    name: str
    description: str = ""


class SubraceDefinition(BaseModel):
    id: str
    name: str
    source: str
    ability_bonuses: dict[str, int] = Field(default_factory=dict)
    ability_choices: list[AbilityScoreOption] = Field(default_factory=list)
    traits: list[RaceTrait] = Field(default_factory=list)


class RaceDefinition(BaseModel):
    """Canonical race record."""
    id: str
    name: str
    source: str
    page: int | None = None
    size: list[str] = Field(default_factory=list)
    speed: dict[str, int] = Field(default_factory=dict)
    ability_bonuses: dict[str, int] = Field(default_factory=dict)
    ability_choices: list[AbilityScoreOption] = Field(default_factory=list)
    darkvision: int = 0
    skills: ProficiencySet = Field(default_factory=ProficiencySet)
    tools: ProficiencySet = Field(default_factory=ProficiencySet)
    languages: ProficiencySet = Field(default_factory=ProficiencySet)
    resistances: list[str] = Field(default_factory=list)
    traits: list[RaceTrait] = Field(default_factory=list)
    subraces: list[SubraceDefinition] = Field(default_factory=list)
    description: str = ""


# =============================================================================
# Class Models
# =============================================================================

class ClassFeature(BaseModel):
    name: str
    level: int = Field(ge=1, le=20)
    source: str = "PHB"
    description: str = ""
    gains_subclass_feature: bool = False


class ClassProficiencies(BaseModel):
    armor: list[str] = Field(default_factory=list)
    weapons: list[str] = Field(default_factory=list)
    tools: ProficiencySet = Field(default_factory=ProficiencySet)
    skills: ProficiencySet = Field(default_factory=ProficiencySet)


class SubclassDefinition(BaseModel):
    id: str
    name: str
    short_name: str
    source: str
    class_name: str
    class_source: str
    subclass_features: list[ClassFeature] = Field(default_factory=list)


class ClassDefinition(BaseModel):
    """Canonical class record consumed by the progression resolver."""
    id: str
    name: str
    source: str
    page: int | None = None
    hit_die: int = 8
    caster_progression: CasterProgression | None = None
    spellcasting_ability: str | None = None
    saving_throws: list[str] = Field(default_factory=list)
    proficiencies: ClassProficiencies = Field(default_factory=ClassProficiencies)
    class_features: list[ClassFeature] = Field(default_factory=list)
    subclasses: list[SubclassDefinition] = Field(default_factory=list)
    subclass_title: str | None = None
    cantrip_progression: list[int] = Field(default_factory=list)
    spells_known_progression: list[int] = Field(default_factory=list)


# =============================================================================
# Generic Models
# =============================================================================

class EntityRecord(BaseModel):
    """Normalized spell, item or feat record used for lookups and tooltips."""
    id: str
    name: str
    source: str
    page: int | None = None
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict, description="Raw record as authored")


class PactSlots(BaseModel):
    count: int = 0
    level: int = 0


__all__ = [
    "AbilityScoreOption",
    "BackgroundProficiencies",
    "CasterProgression",
    "CharacteristicRow",
    "Characteristics",
    "ClassDefinition",
    "ClassFeature",
    "ClassProficiencies",
    "EntityRecord",
    "EquipmentEntry",
    "FeatGrant",
    "Feature",
    "Fluff",
    "NormalizedBackground",
    "PactSlots",
    "ProficiencyChoice",
    "ProficiencySet",
    "ProficiencyType",
    "RaceDefinition",
    "RaceTrait",
    "SchemaVariant",
    "Source",
    "SourceContent",
    "SubclassDefinition",
    "SubraceDefinition",
    "Variant",
]
