"""
Race and subrace normalization.
"""

import logging
from typing import Any

from ..constants import ABILITY_NAMES
from ..models import (
    AbilityScoreOption,
    RaceDefinition,
    RaceTrait,
    SchemaVariant,
    SubraceDefinition,
)
from .background import FluffIndex, build_fluff_index, fluff_from_record
from .copies import resolve_copy
from .markup import convert_markup, make_id, render_entries
from .proficiency import extract_proficiency_set
from .strategies import STRATEGIES

logger = logging.getLogger("charforge")

SIZE_NAMES = {
    "T": "Tiny",
    "S": "Small",
    "M": "Medium",
    "L": "Large",
    "H": "Huge",
    "G": "Gargantuan",
    "V": "Varies",
}

DEFAULT_SPEED = 30


def fixed_ability_bonuses(ability: Any) -> dict[str, int]:
    """Sum fixed bonuses across every ``ability`` element; choices are skipped."""
    bonuses: dict[str, int] = {}
    for element in ability or []:
        if not isinstance(element, dict):
            continue
        for key, value in element.items():
            if key in ABILITY_NAMES and isinstance(value, int) and not isinstance(value, bool):
                name = ABILITY_NAMES[key]
                bonuses[name] = bonuses.get(name, 0) + value
    return bonuses


def ability_choices(ability: Any) -> list[AbilityScoreOption]:
    """Only the choice/weighted options from an ``ability`` array."""
    options = STRATEGIES[SchemaVariant.LEGACY].extract_ability_scores({"ability": ability or []})
    return [option for option in options if option.type != "fixed"]


def parse_speed(speed: Any) -> dict[str, int]:
    if isinstance(speed, bool) or speed is None:
        return {"walk": DEFAULT_SPEED}
    if isinstance(speed, int):
        return {"walk": speed}
    if not isinstance(speed, dict):
        return {"walk": DEFAULT_SPEED}

    result: dict[str, int] = {}
    walk = speed.get("walk", DEFAULT_SPEED)
    for mode, value in speed.items():
        if isinstance(value, dict):
            value = value.get("number")
        if value is True:
            # "equal to your walking speed"
            value = walk if isinstance(walk, int) else DEFAULT_SPEED
        if isinstance(value, int) and not isinstance(value, bool):
            result[mode] = value
    result.setdefault("walk", DEFAULT_SPEED)
    return result


def parse_size(size: Any) -> list[str]:
    codes = size if isinstance(size, list) else [size] if size else []
    names = [SIZE_NAMES.get(str(code).upper(), str(code)) for code in codes if code]
    return names or ["Medium"]


def parse_resistances(resist: Any) -> list[str]:
    names: list[str] = []
    for element in resist or []:
        if isinstance(element, str):
            names.append(element.lower())
        elif isinstance(element, dict):
            choose = element.get("choose")
            if isinstance(choose, dict):
                options = [str(option).lower() for option in choose.get("from", [])]
                if options:
                    names.append(" or ".join(options))
    return names


def parse_traits(entries: Any) -> list[RaceTrait]:
    traits = []
    for entry in entries or []:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            continue
        traits.append(RaceTrait(
            name=convert_markup(entry["name"]).strip(),
            description="\n\n".join(render_entries(entry.get("entries"))),
        ))
    return traits


class RaceNormalizer:
    """Normalize races and attach their subraces.

    Usage:
        races = RaceNormalizer().normalize_all(payload["race"], payload["subrace"], payload["raceFluff"])
    """

    def normalize(
        self,
        raw: dict[str, Any],
        subraces: list[dict[str, Any]] | None = None,
        fluff_index: FluffIndex | None = None,
        siblings: list[dict[str, Any]] | None = None,
    ) -> RaceDefinition | None:
        try:
            return self._normalize(raw, subraces or [], fluff_index or {}, siblings or [])
        except Exception as e:
            name = raw.get("name", "<unnamed>") if isinstance(raw, dict) else "<invalid>"
            logger.warning(f"Failed to normalize race '{name}': {e}")
            return None

    def normalize_all(
        self,
        raws: list[dict[str, Any]],
        subraces: list[dict[str, Any]] | None = None,
        fluff_records: list[dict[str, Any]] | None = None,
    ) -> list[RaceDefinition]:
        fluff_index = build_fluff_index(fluff_records)
        results = []
        for raw in raws:
            race = self.normalize(raw, subraces, fluff_index, raws)
            if race is not None:
                results.append(race)
        return results

    def _normalize(
        self,
        raw: dict[str, Any],
        subraces: list[dict[str, Any]],
        fluff_index: FluffIndex,
        siblings: list[dict[str, Any]],
    ) -> RaceDefinition:
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")
        name, source = raw.get("name"), raw.get("source")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("record has no name")
        if not isinstance(source, str) or not source.strip():
            raise ValueError("record has no source")

        record = resolve_copy(raw, siblings) if "_copy" in raw else raw

        fluff = fluff_from_record(fluff_index.get((name.lower(), source.lower())))
        description = next((text for text in fluff.entries if len(text) > 20), f"The {name} race.")

        darkvision = record.get("darkvision", 0)
        page = record.get("page")
        return RaceDefinition(
            id=make_id(name, source),
            name=name,
            source=source,
            page=page if isinstance(page, int) else None,
            size=parse_size(record.get("size")),
            speed=parse_speed(record.get("speed")),
            ability_bonuses=fixed_ability_bonuses(record.get("ability")),
            ability_choices=ability_choices(record.get("ability")),
            darkvision=darkvision if isinstance(darkvision, int) else 0,
            skills=extract_proficiency_set(record.get("skillProficiencies"), "skills"),
            tools=extract_proficiency_set(record.get("toolProficiencies"), "tools"),
            languages=extract_proficiency_set(record.get("languageProficiencies"), "languages"),
            resistances=parse_resistances(record.get("resist")),
            traits=parse_traits(record.get("entries")),
            subraces=self._subraces_for(name, source, subraces),
            description=description,
        )

    def _subraces_for(
        self, race_name: str, race_source: str, subraces: list[dict[str, Any]]
    ) -> list[SubraceDefinition]:
        results = []
        for sub in subraces:
            if not isinstance(sub, dict):
                continue
            if str(sub.get("raceName", "")).lower() != race_name.lower():
                continue
            if str(sub.get("raceSource", "")).lower() != race_source.lower():
                continue
            # Unnamed subraces only carry lineage options of the base race
            if not isinstance(sub.get("name"), str):
                continue
            try:
                source = sub.get("source") or race_source
                results.append(SubraceDefinition(
                    id=make_id(f"{race_name} {sub['name']}", source),
                    name=sub["name"],
                    source=source,
                    ability_bonuses=fixed_ability_bonuses(sub.get("ability")),
                    ability_choices=ability_choices(sub.get("ability")),
                    traits=parse_traits(sub.get("entries")),
                ))
            except Exception as e:
                logger.warning(f"Failed to normalize subrace '{sub.get('name')}': {e}")
        return results


__all__ = [
    "RaceNormalizer",
    "SIZE_NAMES",
    "ability_choices",
    "fixed_ability_bonuses",
    "parse_resistances",
    "parse_size",
    "parse_speed",
    "parse_traits",
]
