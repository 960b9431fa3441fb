"""
Proficiency extraction for every shape 5etools uses.

Structured lists mix plain strings, ``{name: true}`` maps, ``{choose: ...}``
blocks and ``{any: n}`` markers. Older books describe the same grants in
prose ("Choose two from Arcana, History, and Religion"). Both paths end in a
ProficiencySet: canonical fixed names plus at most one choice.
"""

import re
from typing import Any, Callable

from ..constants import (
    ANY_OPTION,
    NUMBER_WORDS,
    canonical_language,
    canonical_skill,
    canonical_tool,
)
from ..models import ProficiencyChoice, ProficiencySet
from .markup import convert_markup


CANONICALIZERS: dict[str, Callable[[str], str]] = {
    "skills": canonical_skill,
    "tools": canonical_tool,
    "languages": canonical_language,
}

_COUNT = r"(one|two|three|four|five|six|seven|eight|nine|ten|\d+)"
_TAG_NAME_RE = re.compile(r"\{@\w+\s+([^}|]+)(?:\|[^}]*)?\}")
_CHOOSE_FROM_RE = re.compile(
    rf"\b{_COUNT}\s+(?:\w+\s+)?(?:from among|from|among)\s+(.+)", re.IGNORECASE
)
_TYPE_OF_RE = re.compile(rf"\b{_COUNT}\s+(?:type|kind)s?\s+of\s+(.+)", re.IGNORECASE)
_OF_CHOICE_RE = re.compile(
    rf"\b{_COUNT}\s+(?:\w+\s+){{0,2}}of your choice", re.IGNORECASE
)
_LIST_SPLIT_RE = re.compile(r",\s*and\s+|,\s*or\s+|,\s*|\s+and\s+|\s+or\s+")
_CHOICE_SUFFIX_RE = re.compile(r"\s+of your choice.*$", re.IGNORECASE)


def _count(word: str) -> int:
    word = word.lower()
    if word.isdigit():
        return int(word)
    return NUMBER_WORDS.get(word, 1)


def _dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def _clean_name(value: str) -> str:
    name = convert_markup(value).split("|")[0]
    return name.strip().strip(".").strip()


def merge_choices(
    first: ProficiencyChoice | None, second: ProficiencyChoice | None
) -> ProficiencyChoice | None:
    """Combine two choices into one: counts add, options union in order."""
    if first is None:
        return second
    if second is None:
        return first
    return ProficiencyChoice(
        count=first.count + second.count,
        from_=_dedupe(first.from_ + second.from_),
    )


def merge_sets(first: ProficiencySet, second: ProficiencySet) -> ProficiencySet:
    return ProficiencySet(
        fixed=_dedupe(first.fixed + second.fixed),
        choice=merge_choices(first.choice, second.choice),
    )


# =============================================================================
# Structured Shapes
# =============================================================================

def _choice_from_choose(choose: Any, canonical: Callable[[str], str]) -> ProficiencyChoice:
    if not isinstance(choose, dict):
        return ProficiencyChoice(count=1, from_=[ANY_OPTION])
    count = int(choose.get("count", choose.get("amount", 1)) or 1)
    options = choose.get("from")
    if "fromFilter" in choose or not options:
        return ProficiencyChoice(count=count, from_=[ANY_OPTION])
    names = []
    for option in options:
        if isinstance(option, str):
            names.append(canonical(_clean_name(option)))
        elif isinstance(option, dict) and option.get("name"):
            names.append(canonical(_clean_name(str(option["name"]))))
    return ProficiencyChoice(count=count, from_=_dedupe(names))


def extract_proficiency_set(value: Any, kind: str) -> ProficiencySet:
    """Flatten any structured proficiency shape into a ProficiencySet.

    Args:
        value: A list of elements or a single element. Elements may be plain
            strings, ``{"choose": {...}}``, ``{"name": true}`` maps or
            ``{"any": n}`` style markers.
        kind: ``"skills"``, ``"tools"`` or ``"languages"``.
    """
    canonical = CANONICALIZERS[kind]
    if value is None:
        return ProficiencySet()
    elements = value if isinstance(value, list) else [value]

    fixed: list[str] = []
    choice: ProficiencyChoice | None = None

    for element in elements:
        if isinstance(element, str):
            name = _clean_name(element)
            if name.lower() == ANY_OPTION:
                choice = merge_choices(choice, ProficiencyChoice(count=1, from_=[ANY_OPTION]))
            elif name:
                fixed.append(canonical(name))
            continue
        if not isinstance(element, dict):
            continue

        for key, val in element.items():
            if key == "choose":
                choice = merge_choices(choice, _choice_from_choose(val, canonical))
            elif key.lower().startswith("any"):
                amount = val if isinstance(val, int) and not isinstance(val, bool) else 1
                choice = merge_choices(choice, ProficiencyChoice(count=amount, from_=[ANY_OPTION]))
            elif val is True:
                fixed.append(canonical(_clean_name(key)))
            elif isinstance(val, int) and not isinstance(val, bool) and val > 0:
                choice = merge_choices(
                    choice, ProficiencyChoice(count=val, from_=[canonical(_clean_name(key))])
                )

    return ProficiencySet(fixed=_dedupe(fixed), choice=choice)


# =============================================================================
# Free-Text Heuristics
# =============================================================================

def _names_in(text: str, canonical: Callable[[str], str]) -> list[str]:
    """Names from ``{@tag}`` references, or a comma/and list when untagged."""
    tagged = _TAG_NAME_RE.findall(text)
    if tagged:
        return _dedupe([canonical(_clean_name(name)) for name in tagged])
    plain = _CHOICE_SUFFIX_RE.sub("", convert_markup(text)).strip().rstrip(".")
    parts = [part.strip() for part in _LIST_SPLIT_RE.split(plain)]
    return _dedupe([canonical(part) for part in parts if part and part.lower() != "none"])


def _parse_choice_clause(text: str, canonical: Callable[[str], str]) -> ProficiencyChoice | None:
    match = _CHOOSE_FROM_RE.search(text)
    if match:
        options = _names_in(match.group(2), canonical)
        return ProficiencyChoice(count=_count(match.group(1)), from_=options or [ANY_OPTION])

    plain = convert_markup(text)
    match = _TYPE_OF_RE.search(plain)
    if match:
        target = _clean_name(_CHOICE_SUFFIX_RE.sub("", match.group(2)))
        return ProficiencyChoice(count=_count(match.group(1)), from_=[canonical(target)])

    match = _OF_CHOICE_RE.search(plain)
    if match:
        return ProficiencyChoice(count=_count(match.group(1)), from_=[ANY_OPTION])

    return None


def parse_proficiency_text(text: str, kind: str) -> ProficiencySet:
    """Heuristically read a prose proficiency line.

    Handles tagged lists (``{@skill Insight}, {@skill Religion}``), plain
    comma lists, "choose two from ...", "one type of gaming set",
    "two of your choice" and "X, plus one from among ..." combinations.
    """
    canonical = CANONICALIZERS[kind]
    if not text or not text.strip():
        return ProficiencySet()

    fixed_part, choice_part = text, ""
    lowered = text.lower()
    if " plus " in lowered:
        split_at = lowered.index(" plus ")
        fixed_part, choice_part = text[:split_at], text[split_at + len(" plus "):]
        fixed_part = fixed_part.rstrip(", ")

    choice = _parse_choice_clause(choice_part or fixed_part, canonical)
    if choice_part:
        fixed = _names_in(fixed_part, canonical)
    elif choice is None:
        fixed = _names_in(fixed_part, canonical)
    else:
        fixed = []

    return ProficiencySet(fixed=fixed, choice=choice)


__all__ = [
    "CANONICALIZERS",
    "extract_proficiency_set",
    "merge_choices",
    "merge_sets",
    "parse_proficiency_text",
]
