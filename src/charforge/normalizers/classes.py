"""
Class and subclass normalization.

5etools lists a class's features as reference strings
(``"Action Surge|Fighter||2"``) and stores the text separately in
``classFeature`` / ``subclassFeature`` records. The normalizer joins the two.
"""

import logging
from typing import Any

from ..constants import ABILITY_NAMES
from ..models import (
    CasterProgression,
    ClassDefinition,
    ClassFeature,
    ClassProficiencies,
    ProficiencySet,
    SubclassDefinition,
)
from .markup import convert_markup, make_id, render_entries
from .proficiency import extract_proficiency_set, merge_sets, parse_proficiency_text

logger = logging.getLogger("charforge")

DEFAULT_CLASS_SOURCE = "PHB"

CASTER_PROGRESSIONS: dict[str, CasterProgression] = {
    "full": CasterProgression.FULL,
    "1/2": CasterProgression.HALF,
    "artificer": CasterProgression.HALF,
    "1/3": CasterProgression.THIRD,
    "pact": CasterProgression.PACT,
}

FeatureKey = tuple[str, str, str, int, str]


def _level(value: Any) -> int | None:
    try:
        level = int(value)
    except (TypeError, ValueError):
        return None
    return level if 1 <= level <= 20 else None


def _src(value: Any, default: str) -> str:
    text = str(value or "").strip()
    return text.upper() if text else default


def parse_caster_progression(value: Any) -> CasterProgression | None:
    if not isinstance(value, str):
        return None
    return CASTER_PROGRESSIONS.get(value.strip().lower())


def parse_class_feature_ref(ref: str) -> dict[str, Any] | None:
    """Split ``"Name|Class|ClassSrc|Level[|Src]"``."""
    parts = ref.split("|")
    if len(parts) < 4:
        return None
    level = _level(parts[3])
    if level is None:
        return None
    class_source = _src(parts[2], DEFAULT_CLASS_SOURCE)
    return {
        "name": parts[0].strip(),
        "class_name": parts[1].strip(),
        "class_source": class_source,
        "level": level,
        "source": _src(parts[4] if len(parts) > 4 else "", class_source),
    }


def parse_subclass_feature_ref(ref: str) -> dict[str, Any] | None:
    """Split ``"Name|Class|ClassSrc|SubShort|SubSrc|Level[|Src]"``."""
    parts = ref.split("|")
    if len(parts) < 6:
        return None
    level = _level(parts[5])
    if level is None:
        return None
    class_source = _src(parts[2], DEFAULT_CLASS_SOURCE)
    subclass_source = _src(parts[4], class_source)
    return {
        "name": parts[0].strip(),
        "class_name": parts[1].strip(),
        "class_source": class_source,
        "short_name": parts[3].strip(),
        "subclass_source": subclass_source,
        "level": level,
        "source": _src(parts[6] if len(parts) > 6 else "", subclass_source),
    }


def _feature_key(
    name: str, class_name: str, source: str, level: int, short_name: str = ""
) -> FeatureKey:
    return name.lower(), class_name.lower(), source.lower(), level, short_name.lower()


def index_features(records: list[dict[str, Any]] | None) -> dict[FeatureKey, dict[str, Any]]:
    """Index ``classFeature`` or ``subclassFeature`` records by name, class, source and level."""
    index: dict[FeatureKey, dict[str, Any]] = {}
    for record in records or []:
        if not isinstance(record, dict):
            continue
        level = _level(record.get("level"))
        name, class_name = record.get("name"), record.get("className")
        if level is None or not isinstance(name, str) or not isinstance(class_name, str):
            continue
        source = _src(record.get("source"), DEFAULT_CLASS_SOURCE)
        short_name = record.get("subclassShortName")
        index[_feature_key(
            name, class_name, source, level, short_name if isinstance(short_name, str) else ""
        )] = record
    return index


def _armor_names(values: Any) -> list[str]:
    names = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("proficiency") or value.get("full")
        if isinstance(value, str):
            name = convert_markup(value).strip()
            if name:
                names.append(name)
    return names


def _tool_set(values: Any) -> ProficiencySet:
    result = ProficiencySet()
    for value in values or []:
        if isinstance(value, str):
            result = merge_sets(result, parse_proficiency_text(value, "tools"))
        else:
            result = merge_sets(result, extract_proficiency_set(value, "tools"))
    return result


class ClassNormalizer:
    """Normalize classes with their features and subclasses.

    Usage:
        classes = ClassNormalizer().normalize_all(
            payload["class"], payload["subclass"],
            payload["classFeature"], payload["subclassFeature"],
        )
    """

    def normalize_all(
        self,
        raws: list[dict[str, Any]],
        subclasses: list[dict[str, Any]] | None = None,
        class_features: list[dict[str, Any]] | None = None,
        subclass_features: list[dict[str, Any]] | None = None,
    ) -> list[ClassDefinition]:
        feature_index = index_features(class_features)
        subfeature_index = index_features(subclass_features)
        results = []
        for raw in raws:
            definition = self.normalize(raw, subclasses, feature_index, subfeature_index)
            if definition is not None:
                results.append(definition)
        logger.debug(f"Normalized {len(results)} classes")
        return results

    def normalize(
        self,
        raw: dict[str, Any],
        subclasses: list[dict[str, Any]] | None = None,
        feature_index: dict[FeatureKey, dict[str, Any]] | None = None,
        subfeature_index: dict[FeatureKey, dict[str, Any]] | None = None,
    ) -> ClassDefinition | None:
        try:
            return self._normalize(raw, subclasses or [], feature_index or {}, subfeature_index or {})
        except Exception as e:
            name = raw.get("name", "<unnamed>") if isinstance(raw, dict) else "<invalid>"
            logger.warning(f"Failed to normalize class '{name}': {e}")
            return None

    def _normalize(
        self,
        raw: dict[str, Any],
        subclasses: list[dict[str, Any]],
        feature_index: dict[FeatureKey, dict[str, Any]],
        subfeature_index: dict[FeatureKey, dict[str, Any]],
    ) -> ClassDefinition:
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")
        name, source = raw.get("name"), raw.get("source")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("record has no name")
        if not isinstance(source, str) or not source.strip():
            raise ValueError("record has no source")

        hit_die = raw.get("hd", {})
        faces = hit_die.get("faces") if isinstance(hit_die, dict) else None
        ability = raw.get("spellcastingAbility")
        starting = raw.get("startingProficiencies") or {}
        page = raw.get("page")

        return ClassDefinition(
            id=make_id(name, source),
            name=name,
            source=source,
            page=page if isinstance(page, int) else None,
            hit_die=faces if isinstance(faces, int) else 8,
            caster_progression=parse_caster_progression(raw.get("casterProgression")),
            spellcasting_ability=ABILITY_NAMES.get(ability) if isinstance(ability, str) else None,
            saving_throws=[ABILITY_NAMES[a] for a in raw.get("proficiency") or [] if a in ABILITY_NAMES],
            proficiencies=ClassProficiencies(
                armor=_armor_names(starting.get("armor")),
                weapons=_armor_names(starting.get("weapons")),
                tools=_tool_set(starting.get("tools")),
                skills=extract_proficiency_set(starting.get("skills"), "skills"),
            ),
            class_features=self._class_features(raw, feature_index),
            subclasses=self._subclasses(name, source, subclasses, subfeature_index),
            subclass_title=raw.get("subclassTitle"),
            cantrip_progression=[int(n) for n in raw.get("cantripProgression") or []],
            spells_known_progression=[int(n) for n in raw.get("spellsKnownProgression") or []],
        )

    @staticmethod
    def _describe(record: dict[str, Any] | None) -> str:
        if record is None:
            return ""
        return "\n\n".join(render_entries(record.get("entries")))

    def _class_features(
        self, raw: dict[str, Any], feature_index: dict[FeatureKey, dict[str, Any]]
    ) -> list[ClassFeature]:
        features = []
        for element in raw.get("classFeatures") or []:
            gains_subclass = False
            if isinstance(element, dict):
                gains_subclass = bool(element.get("gainSubclassFeature"))
                element = element.get("classFeature")
            if not isinstance(element, str):
                continue
            ref = parse_class_feature_ref(element)
            if ref is None:
                logger.debug(f"Skipping unparseable class feature reference '{element}'")
                continue
            record = feature_index.get(
                _feature_key(ref["name"], ref["class_name"], ref["source"], ref["level"])
            )
            features.append(ClassFeature(
                name=ref["name"],
                level=ref["level"],
                source=ref["source"],
                description=self._describe(record),
                gains_subclass_feature=gains_subclass,
            ))
        return features

    def _subclasses(
        self,
        class_name: str,
        class_source: str,
        subclasses: list[dict[str, Any]],
        subfeature_index: dict[FeatureKey, dict[str, Any]],
    ) -> list[SubclassDefinition]:
        results = []
        for sub in subclasses:
            if not isinstance(sub, dict) or not isinstance(sub.get("name"), str):
                continue
            if str(sub.get("className", "")).lower() != class_name.lower():
                continue
            if _src(sub.get("classSource"), DEFAULT_CLASS_SOURCE) != class_source.upper():
                continue

            source = _src(sub.get("source"), class_source.upper())
            features = []
            for element in sub.get("subclassFeatures") or []:
                if not isinstance(element, str):
                    continue
                ref = parse_subclass_feature_ref(element)
                if ref is None:
                    continue
                record = subfeature_index.get(
                    _feature_key(
                        ref["name"], ref["class_name"], ref["source"], ref["level"], ref["short_name"]
                    )
                )
                features.append(ClassFeature(
                    name=ref["name"],
                    level=ref["level"],
                    source=ref["source"],
                    description=self._describe(record),
                ))

            results.append(SubclassDefinition(
                id=make_id(f"{class_name} {sub['name']}", source),
                name=sub["name"],
                short_name=sub.get("shortName") or sub["name"],
                source=source,
                class_name=class_name,
                class_source=class_source,
                subclass_features=features,
            ))
        return results


__all__ = [
    "CASTER_PROGRESSIONS",
    "ClassNormalizer",
    "index_features",
    "parse_caster_progression",
    "parse_class_feature_ref",
    "parse_subclass_feature_ref",
]
