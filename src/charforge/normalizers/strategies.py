"""
Schema strategies for legacy and modern 5etools records.

Newer books (2024 rules and the settings built on them) encode proficiencies,
ability scores and feats as structured arrays. Older books encode much of the
same information in prose entries. A record's source id decides which
strategy reads it; both expose the same extraction interface.
"""

from abc import ABC, abstractmethod
from string import capwords
from typing import Any, Iterator

from ..constants import ABILITY_NAMES
from ..models import (
    AbilityScoreOption,
    BackgroundProficiencies,
    CharacteristicRow,
    Characteristics,
    EquipmentEntry,
    FeatGrant,
    Feature,
    ProficiencySet,
    SchemaVariant,
)
from .markup import (
    clean_label,
    convert_markup,
    find_named_entry,
    iter_tables,
    render_entries,
    split_reference,
)
from .proficiency import extract_proficiency_set, parse_proficiency_text


# Sources authored in the structured (2024-era) schema
MODERN_SOURCES = frozenset({"XPHB", "SCC", "BGG", "SATO", "DSOTDQ", "WBTW"})

# Structured field → proficiency type
STRUCTURED_FIELDS: dict[str, str] = {
    "skillProficiencies": "skills",
    "toolProficiencies": "tools",
    "languageProficiencies": "languages",
}

# Prose list-item label → proficiency type
TEXT_LABELS: dict[str, str] = {
    "skill proficiencies": "skills",
    "skill proficiency": "skills",
    "skills": "skills",
    "tool proficiencies": "tools",
    "tool proficiency": "tools",
    "tools": "tools",
    "languages": "languages",
    "language": "languages",
}

CHARACTERISTIC_FIELDS = ("personality_traits", "ideals", "bonds", "flaws")

# Column-label keyword → characteristics field
CHARACTERISTIC_LABELS: dict[str, str] = {
    "personality": "personality_traits",
    "trait": "personality_traits",
    "ideal": "ideals",
    "bond": "bonds",
    "flaw": "flaws",
}

DEFAULT_ITEM_SOURCE = "PHB"


def classify_source(source: str | None) -> SchemaVariant:
    """Modern if the source id is one of the structured-schema books."""
    if source and source.strip().upper() in MODERN_SOURCES:
        return SchemaVariant.MODERN
    return SchemaVariant.LEGACY


# =============================================================================
# Shared helpers
# =============================================================================

def _iter_labeled_items(entries: list | None) -> Iterator[tuple[str, Any]]:
    """Yield ``(label, body)`` for every named list item or block, depth-first."""
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        if entry.get("name"):
            body = entry.get("entry")
            if body is None:
                body = " ".join(e for e in entry.get("entries", []) if isinstance(e, str))
            yield clean_label(entry["name"]), body
        yield from _iter_labeled_items(entry.get("items"))
        yield from _iter_labeled_items(entry.get("entries"))


def _iter_named_blocks(entries: list | None) -> Iterator[dict]:
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        if isinstance(entry.get("name"), str):
            yield entry
        yield from _iter_named_blocks(entry.get("entries"))


def _cell_text(cell: Any) -> str:
    if isinstance(cell, dict):
        roll = cell.get("roll")
        if isinstance(roll, dict):
            if "exact" in roll:
                return str(roll["exact"])
            if "min" in roll and "max" in roll:
                return f"{roll['min']}-{roll['max']}"
        if "entry" in cell:
            return convert_markup(str(cell["entry"]))
        return " ".join(render_entries(cell.get("entries", [])))
    return convert_markup(str(cell)).strip()


def _table_rows(table: dict) -> list[CharacteristicRow]:
    rows = []
    for row in table.get("rows", []):
        if isinstance(row, dict):
            row = row.get("row", [])
        if not isinstance(row, list) or len(row) < 2:
            continue
        rows.append(CharacteristicRow(roll=_cell_text(row[0]), description=_cell_text(row[1])))
    return rows


def _equipment_entry(value: Any, default_source: str | None) -> EquipmentEntry | None:
    if isinstance(value, str):
        name, source = split_reference(value, default_source)
        return EquipmentEntry(type="item", name=name, source=source)
    if not isinstance(value, dict):
        return None

    quantity = int(value.get("quantity", 1) or 1)
    if "item" in value:
        name, source = split_reference(str(value["item"]), default_source)
        return EquipmentEntry(
            type="item",
            name=value.get("displayName") or name,
            source=source,
            quantity=quantity,
        )
    if "special" in value:
        return EquipmentEntry(type="item", name=convert_markup(str(value["special"])), quantity=quantity)
    if "equipmentType" in value:
        return EquipmentEntry(type="item", name=str(value["equipmentType"]), quantity=quantity)
    for key in ("value", "containsValue"):
        if key in value:
            return EquipmentEntry(type="currency", value=int(value[key]))
    return None


def _option_set(options: dict[str, Any], default_source: str | None) -> dict[str, list[EquipmentEntry]]:
    result: dict[str, list[EquipmentEntry]] = {}
    for letter, items in options.items():
        key = letter if letter == "_" else letter.upper()
        entries = []
        for item in items if isinstance(items, list) else [items]:
            entry = _equipment_entry(item, default_source)
            if entry is not None:
                entries.append(entry)
        result[key] = entries
    return result


# =============================================================================
# Strategy interface
# =============================================================================

class SchemaStrategy(ABC):
    """Extraction interface shared by both schema generations."""

    variant: SchemaVariant

    @abstractmethod
    def extract_proficiencies(self, raw: dict[str, Any]) -> BackgroundProficiencies:
        """Skills, tools, languages and expertise."""
        pass

    def extract_equipment(self, raw: dict[str, Any]) -> list[dict[str, list[EquipmentEntry]]]:
        """Starting equipment as a list of option sets.

        Structured ``startingEquipment`` wins. A flat legacy ``equipment``
        list becomes one option set, ``A``, tagged with the record's source.
        """
        starting = raw.get("startingEquipment")
        if isinstance(starting, list) and starting:
            return [
                _option_set(option_set, DEFAULT_ITEM_SOURCE)
                for option_set in starting
                if isinstance(option_set, dict)
            ]

        equipment = raw.get("equipment")
        if isinstance(equipment, list) and equipment:
            source = raw.get("source")
            entries = [
                entry
                for entry in (_equipment_entry(item, source) for item in equipment)
                if entry is not None
            ]
            return [{"A": entries}]
        return []

    def extract_features(self, raw: dict[str, Any]) -> list[Feature]:
        """Background features from a ``feature`` field or "Feature:" blocks."""
        features: list[Feature] = []

        explicit = raw.get("feature")
        if isinstance(explicit, dict) and explicit.get("name"):
            features.append(self._feature_from_block(explicit))

        for block in _iter_named_blocks(raw.get("entries")):
            label = block["name"].strip()
            lowered = label.lower()
            if "feature:" not in lowered or lowered.startswith("variant"):
                continue
            feature = self._feature_from_block(block)
            if all(existing.name != feature.name for existing in features):
                features.append(feature)
        return features

    def extract_characteristics(self, raw: dict[str, Any]) -> Characteristics:
        """Suggested personality tables, matched by column label or position."""
        section = find_named_entry(
            raw.get("entries"), lambda name: "suggested characteristics" in name.lower()
        )
        if section is None:
            return Characteristics()

        collected: dict[str, list[CharacteristicRow]] = {}
        for position, table in enumerate(list(iter_tables(section.get("entries")))[:4]):
            labels = table.get("colLabels") or []
            label = clean_label(labels[1]) if len(labels) > 1 else ""
            field = next(
                (name for keyword, name in CHARACTERISTIC_LABELS.items() if keyword in label),
                CHARACTERISTIC_FIELDS[position],
            )
            if field in collected:
                field = next((f for f in CHARACTERISTIC_FIELDS if f not in collected), field)
            collected.setdefault(field, _table_rows(table))
        return Characteristics(**collected)

    def extract_ability_scores(self, raw: dict[str, Any]) -> list[AbilityScoreOption]:
        options: list[AbilityScoreOption] = []
        for element in raw.get("ability") or []:
            if not isinstance(element, dict):
                continue
            bonuses = {
                ABILITY_NAMES[key]: int(value)
                for key, value in element.items()
                if key in ABILITY_NAMES and isinstance(value, int)
            }
            if bonuses:
                options.append(AbilityScoreOption(type="fixed", bonuses=bonuses))

            choose = element.get("choose")
            if not isinstance(choose, dict):
                continue
            weighted = choose.get("weighted")
            if isinstance(weighted, dict):
                weights = [int(w) for w in weighted.get("weights", [])]
                options.append(AbilityScoreOption(
                    type="weighted",
                    from_=[ABILITY_NAMES.get(a, a) for a in weighted.get("from", [])],
                    weights=weights,
                    count=len(weights),
                ))
            else:
                options.append(AbilityScoreOption(
                    type="choice",
                    from_=[ABILITY_NAMES.get(a, a) for a in choose.get("from", list(ABILITY_NAMES))],
                    count=int(choose.get("count", 1)),
                    amount=int(choose.get("amount", 1)),
                ))
        return options

    def extract_feats(self, raw: dict[str, Any]) -> list[FeatGrant]:
        feats: list[FeatGrant] = []
        for element in raw.get("feats") or []:
            if not isinstance(element, dict):
                continue
            for key, value in element.items():
                if key in ("any", "anyFromCategory"):
                    continue
                name, source = split_reference(key, DEFAULT_ITEM_SOURCE)
                feats.append(FeatGrant(name=capwords(name), source=source, required=bool(value)))
        return feats

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _feature_from_block(block: dict) -> Feature:
        label = convert_markup(block["name"]).strip()
        if ":" in label:
            label = label.split(":", 1)[1].strip() or label
        body = block.get("entries")
        if body is None and block.get("entry"):
            body = [block["entry"]]
        prerequisite = block.get("prerequisite")
        return Feature(
            name=label,
            description="\n\n".join(render_entries(body)),
            requirements=convert_markup(prerequisite) if isinstance(prerequisite, str) else None,
        )

    @staticmethod
    def _structured_proficiencies(raw: dict[str, Any]) -> dict[str, ProficiencySet]:
        """Proficiencies from structured fields, keyed by type."""
        found: dict[str, ProficiencySet] = {}
        for field, kind in STRUCTURED_FIELDS.items():
            if raw.get(field):
                found[kind] = extract_proficiency_set(raw[field], kind)

        # Older custom shape: proficiencies: {skills, tools, languages}
        nested = raw.get("proficiencies")
        if isinstance(nested, dict) and any(k in nested for k in ("skills", "tools", "languages")):
            for kind in ("skills", "tools", "languages"):
                if nested.get(kind) and kind not in found:
                    found[kind] = extract_proficiency_set(nested[kind], kind)
        elif nested and "skills" not in found:
            found["skills"] = extract_proficiency_set(nested, "skills")
        return found

    @staticmethod
    def _expertise(raw: dict[str, Any]) -> list[str]:
        return extract_proficiency_set(raw.get("expertise"), "skills").fixed


class ModernSchema(SchemaStrategy):
    """Structured arrays with explicit ``choose`` and weighted blocks."""

    variant = SchemaVariant.MODERN

    def extract_proficiencies(self, raw: dict[str, Any]) -> BackgroundProficiencies:
        found = self._structured_proficiencies(raw)
        return BackgroundProficiencies(
            skills=found.get("skills", ProficiencySet()),
            tools=found.get("tools", ProficiencySet()),
            languages=found.get("languages", ProficiencySet()),
            expertise=self._expertise(raw),
        )


class LegacySchema(SchemaStrategy):
    """Structured fields when present, prose list items otherwise."""

    variant = SchemaVariant.LEGACY

    def extract_proficiencies(self, raw: dict[str, Any]) -> BackgroundProficiencies:
        found = self._structured_proficiencies(raw)

        for label, body in _iter_labeled_items(raw.get("entries")):
            kind = TEXT_LABELS.get(label)
            if kind is None or kind in found or not isinstance(body, str):
                continue
            parsed = parse_proficiency_text(body, kind)
            if not parsed.is_empty():
                found[kind] = parsed

        return BackgroundProficiencies(
            skills=found.get("skills", ProficiencySet()),
            tools=found.get("tools", ProficiencySet()),
            languages=found.get("languages", ProficiencySet()),
            expertise=self._expertise(raw),
        )


STRATEGIES: dict[SchemaVariant, SchemaStrategy] = {
    SchemaVariant.MODERN: ModernSchema(),
    SchemaVariant.LEGACY: LegacySchema(),
}


def strategy_for(raw: dict[str, Any]) -> SchemaStrategy:
    """Pick the extraction strategy for a raw record by its source."""
    return STRATEGIES[classify_source(raw.get("source"))]


__all__ = [
    "LegacySchema",
    "MODERN_SOURCES",
    "ModernSchema",
    "STRATEGIES",
    "SchemaStrategy",
    "classify_source",
    "strategy_for",
]
