"""
Resolution of 5etools ``_copy`` records.

A record may be authored as a copy of another (``{"_copy": {"name", "source",
"_mod"}}``) with its own fields layered on top and array edits described by
``_mod`` directives. Only the array modes that matter for entries are
applied; anything else is left untouched.
"""

import logging
from copy import deepcopy
from typing import Any

logger = logging.getLogger("charforge")

MAX_COPY_DEPTH = 5

ARRAY_MODES = frozenset({"replaceArr", "insertArr", "appendArr", "prependArr", "removeArr"})


def copy_target(raw: dict[str, Any]) -> tuple[str, str] | None:
    """``(name, source)`` of the record ``raw`` copies, lowercased, or None."""
    copy = raw.get("_copy")
    if not isinstance(copy, dict):
        return None
    name, source = copy.get("name"), copy.get("source")
    if not isinstance(name, str) or not isinstance(source, str):
        return None
    return name.lower(), source.lower()


def copies_entity(raw: dict[str, Any], name: str, source: str) -> bool:
    return copy_target(raw) == (name.lower(), source.lower())


def iter_directives(mod_value: Any):
    """Yield well-formed array directives from a ``_mod`` field value."""
    directives = mod_value if isinstance(mod_value, list) else [mod_value]
    for directive in directives:
        if isinstance(directive, dict) and directive.get("mode") in ARRAY_MODES:
            yield directive


def directive_items(directive: dict[str, Any]) -> list[Any]:
    items = directive.get("items", [])
    return items if isinstance(items, list) else [items]


def _find_index(values: list, target: Any) -> int | None:
    if isinstance(target, dict) and isinstance(target.get("index"), int):
        index = target["index"]
        return index if 0 <= index < len(values) else None
    if isinstance(target, str):
        for index, value in enumerate(values):
            if isinstance(value, dict) and value.get("name") == target:
                return index
            if value == target:
                return index
    return None


def apply_array_mod(values: list, directive: dict[str, Any]) -> list:
    """Apply one array directive to a copy of ``values``."""
    result = list(values)
    mode = directive["mode"]
    items = directive_items(directive)

    if mode == "appendArr":
        result.extend(items)
    elif mode == "prependArr":
        result[:0] = items
    elif mode == "insertArr":
        index = directive.get("index", len(result))
        if not isinstance(index, int):
            index = len(result)
        result[index:index] = items
    elif mode == "replaceArr":
        index = _find_index(result, directive.get("replace"))
        if index is not None:
            result[index:index + 1] = items
    elif mode == "removeArr":
        names = directive.get("names", [])
        names = names if isinstance(names, list) else [names]
        result = [
            value for value in result
            if not (isinstance(value, dict) and value.get("name") in names) and value not in names
        ]
    return result


def resolve_copy(
    raw: dict[str, Any],
    candidates: list[dict[str, Any]],
    _depth: int = 0,
) -> dict[str, Any]:
    """Return a new record with the copied base merged under ``raw``.

    When the base cannot be found the record is returned without its
    ``_copy`` field.
    """
    target = copy_target(raw)
    own_fields = {key: deepcopy(value) for key, value in raw.items() if key != "_copy"}
    if target is None:
        return own_fields

    base = next(
        (
            candidate for candidate in candidates
            if candidate is not raw
            and str(candidate.get("name", "")).lower() == target[0]
            and str(candidate.get("source", "")).lower() == target[1]
        ),
        None,
    )
    if base is None:
        logger.debug(f"Copy base {target} not found for '{raw.get('name')}'")
        return own_fields

    if "_copy" in base and _depth < MAX_COPY_DEPTH:
        merged = resolve_copy(base, candidates, _depth + 1)
    else:
        merged = {key: deepcopy(value) for key, value in base.items() if key != "_copy"}
    merged.update(own_fields)

    mod = raw["_copy"].get("_mod")
    if isinstance(mod, dict):
        for field, value in mod.items():
            current = merged.get(field)
            if not isinstance(current, list):
                continue
            for directive in iter_directives(value):
                current = apply_array_mod(current, directive)
            merged[field] = current
    return merged


__all__ = [
    "ARRAY_MODES",
    "apply_array_mod",
    "copies_entity",
    "copy_target",
    "directive_items",
    "iter_directives",
    "resolve_copy",
]
