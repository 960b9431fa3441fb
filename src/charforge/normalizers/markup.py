"""
Shared utilities for 5etools markup and entry structures.

5etools text embeds inline tags such as ``{@spell fireball|PHB}`` and
structures prose as nested ``entries`` blocks, lists and tables. These
helpers turn both into plain text.
"""

import re
from typing import Any


_TAG_RE = re.compile(r"\{@(\w+)(?:\s+([^{}]*))?\}")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Block and list-item labels that restate mechanics extracted elsewhere
MECHANICAL_LABELS = frozenset({
    "skill proficiencies",
    "skill proficiency",
    "skills",
    "tool proficiencies",
    "tool proficiency",
    "tools",
    "languages",
    "language",
    "equipment",
    "starting equipment",
    "ability scores",
    "ability score increase",
    "feat",
    "feats",
})

BULLET = "• "


def _replace_tag(match: re.Match) -> str:
    tag = match.group(1).lower()
    content = match.group(2) or ""
    if not content:
        return ""
    if tag == "dc":
        return f"DC {content.split('|')[0]}"
    if tag == "hit":
        value = content.split("|")[0]
        return value if value.startswith(("+", "-")) else f"+{value}"
    parts = content.split("|")
    if len(parts) > 2 and parts[2]:
        return parts[2]
    return parts[0]


def convert_markup(text: str) -> str:
    """Convert 5etools markup tags to plain text.

    ``{@dc 15}`` becomes ``DC 15``, ``{@hit 5}`` becomes ``+5`` and any other
    tag is replaced by its display text (third pipe field) or its name.
    """
    if not text:
        return ""
    previous = None
    # Inner tags resolve first; a few passes handle nesting
    for _ in range(3):
        if previous == text:
            break
        previous = text
        text = _TAG_RE.sub(_replace_tag, text)
    return text


def make_slug(name: str) -> str:
    """Lowercase, hyphenated form of a name (``"Folk Hero"`` → ``"folk-hero"``)."""
    return _SLUG_RE.sub("-", name.lower()).strip("-")


def make_id(name: str, source: str) -> str:
    """Stable entity id from name and source (``"Acolyte", "PHB"`` → ``"acolyte_phb"``)."""
    return f"{make_slug(name)}_{source.lower()}"


def split_reference(value: str, default_source: str | None = None) -> tuple[str, str | None]:
    """Split a ``"name|source"`` reference into its parts."""
    name, _, source = value.partition("|")
    source = source.split("|")[0].strip().upper()
    return name.strip(), source or default_source


def clean_label(label: Any) -> str:
    """Normalize a block or item name for label comparison."""
    return convert_markup(str(label or "")).strip().rstrip(":").strip().lower()


def is_mechanical_block(entry: Any) -> bool:
    """True if a block only restates proficiencies, equipment, or similar mechanics."""
    if not isinstance(entry, dict):
        return False
    if clean_label(entry.get("name")) in MECHANICAL_LABELS:
        return True
    if entry.get("type") == "list":
        names = [
            clean_label(item.get("name"))
            for item in entry.get("items", [])
            if isinstance(item, dict)
        ]
        items = entry.get("items", [])
        return bool(names) and len(names) == len(items) and all(
            name in MECHANICAL_LABELS for name in names
        )
    return False


def _item_text(item: dict) -> str:
    body = item.get("entry")
    if body is None:
        body = "\n".join(render_entries(item.get("entries", [])))
    else:
        body = convert_markup(str(body))
    name = convert_markup(str(item.get("name", ""))).strip()
    return f"{name} {body}".strip() if name else body


def render_entries(entries: list | None, skip_mechanical: bool = False) -> list[str]:
    """Render an entries array to a list of plain-text blocks.

    Strings pass through markup conversion, lists render as bullet lines,
    named blocks are prefixed with their name and nested blocks are
    flattened recursively. Tables are omitted.
    """
    if not entries:
        return []
    result: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            text = convert_markup(entry).strip()
            if text:
                result.append(text)
            continue
        if not isinstance(entry, dict):
            continue
        if skip_mechanical and is_mechanical_block(entry):
            continue

        entry_type = entry.get("type", "entries")
        if entry_type == "list":
            lines = []
            for item in entry.get("items", []):
                if isinstance(item, str):
                    lines.append(f"{BULLET}{convert_markup(item)}")
                elif isinstance(item, dict):
                    if skip_mechanical and clean_label(item.get("name")) in MECHANICAL_LABELS:
                        continue
                    text = _item_text(item)
                    if text:
                        lines.append(f"{BULLET}{text}")
            if lines:
                result.append("\n".join(lines))
        elif entry_type == "table":
            continue
        elif entry_type == "item":
            text = _item_text(entry)
            if text:
                result.append(text)
        else:
            name = convert_markup(str(entry.get("name", ""))).strip()
            sub = render_entries(entry.get("entries", []), skip_mechanical)
            if name and sub:
                result.append(f"{name}. {sub[0]}")
                result.extend(sub[1:])
            elif sub:
                result.extend(sub)
            elif entry.get("entry"):
                result.append(convert_markup(str(entry["entry"])))
    return result


def render_description(entries: list | None, skip_mechanical: bool = True) -> str:
    """Render entries to one text blob, blocks separated by a blank line."""
    return "\n\n".join(render_entries(entries, skip_mechanical=skip_mechanical))


def find_named_entry(entries: list | None, predicate) -> dict | None:
    """Depth-first search for a block whose name satisfies ``predicate``."""
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if isinstance(name, str) and predicate(name):
            return entry
        for child_key in ("entries", "items"):
            found = find_named_entry(entry.get(child_key), predicate)
            if found is not None:
                return found
    return None


def iter_tables(entries: list | None):
    """Yield table blocks in document order, descending into nested entries."""
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        if entry.get("type") == "table":
            yield entry
        else:
            yield from iter_tables(entry.get("entries"))


__all__ = [
    "BULLET",
    "MECHANICAL_LABELS",
    "clean_label",
    "convert_markup",
    "find_named_entry",
    "is_mechanical_block",
    "iter_tables",
    "make_id",
    "make_slug",
    "render_description",
    "render_entries",
    "split_reference",
]
