"""
ReferenceResolver - turns ``{@type name|SRC|display}`` tags into entities.

Lookups go through the entity services. A failed lookup never raises; it
produces an UnresolvedReference carrying the reason, which callers can show
in place of a tooltip.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .catalog import SourceCatalog
from .models import ClassDefinition, EntityRecord, RaceDefinition
from .normalizers.markup import convert_markup
from .services import EntityService, EntityServiceError

logger = logging.getLogger("charforge")

REFERENCE_RE = re.compile(r"\{@(\w+)\s+([^{}]+)\}")

# Tag name → service key
TYPE_ALIASES: dict[str, str] = {
    "item": "item",
    "equipment": "item",
    "pack": "item",
    "spell": "spell",
    "feat": "feat",
    "background": "background",
    "class": "class",
    "race": "race",
}

COIN_VALUES = (("gp", 100), ("sp", 10), ("cp", 1))


@dataclass
class UnresolvedReference:
    """Why a reference could not be turned into an entity."""
    name: str
    error: str


@dataclass
class ParsedReference:
    tag: str
    name: str
    source: str | None = None
    display: str | None = None
    raw: str = ""

    @property
    def text(self) -> str:
        return self.display or self.name


@dataclass
class ResolvedText:
    """Plain text of a passage plus the resolution of each tag in it."""
    text: str
    references: list[tuple[ParsedReference, Any]] = field(default_factory=list)


def parse_reference(tag_text: str) -> ParsedReference | None:
    """Parse one ``{@type name|SRC|display}`` tag, or return None."""
    match = REFERENCE_RE.search(tag_text)
    if match is None:
        return None
    parts = match.group(2).split("|")
    source = parts[1].strip().upper() if len(parts) > 1 and parts[1].strip() else None
    display = parts[2].strip() if len(parts) > 2 and parts[2].strip() else None
    return ParsedReference(
        tag=match.group(1).lower(),
        name=parts[0].strip(),
        source=source,
        display=display,
        raw=match.group(0),
    )


def find_references(text: str) -> list[ParsedReference]:
    """Every tag in ``text`` whose type the resolver knows, in order."""
    references = []
    for match in REFERENCE_RE.finditer(text or ""):
        parsed = parse_reference(match.group(0))
        if parsed is not None and parsed.tag in TYPE_ALIASES:
            references.append(parsed)
    return references


def format_value(copper: int) -> str:
    for coin, rate in COIN_VALUES:
        if copper >= rate and copper % rate == 0:
            return f"{copper // rate} {coin}"
    return f"{copper} cp"


class ReferenceResolver:
    """
    Resolve cross-references against the entity services.

    Usage:
        resolver = ReferenceResolver({"spell": spells, "item": items, "class": classes})
        entity = resolver.resolve("spell", "Fireball", "PHB")
    """

    def __init__(
        self,
        services: dict[str, EntityService] | None = None,
        catalog: SourceCatalog | None = None,
    ):
        self.services: dict[str, EntityService] = {}
        self._cache: dict[tuple[str, str, str], Any] = {}
        for entity_type, service in (services or {}).items():
            self.register(entity_type, service)
        if catalog is not None:
            catalog.add_listener(lambda _allowed: self.clear_cache())

    def register(self, entity_type: str, service: EntityService) -> None:
        """Add a service; its reloads clear the result cache."""
        self.services[entity_type] = service
        service.add_refresh_listener(self.clear_cache)
        self.clear_cache()

    def resolve(self, entity_type: str, name: str, source: str | None = None) -> Any:
        """Find an entity by type, name and optional source.

        Returns:
            The entity, or an UnresolvedReference explaining the miss.
        """
        if not isinstance(entity_type, str) or not isinstance(name, str):
            return UnresolvedReference(
                name=name if isinstance(name, str) else "",
                error=f"Invalid reference: {entity_type!r} {name!r}",
            )
        if not isinstance(source, str):
            source = None

        key_type = TYPE_ALIASES.get(entity_type.lower())
        if key_type is None:
            return UnresolvedReference(name=name, error=f"Unknown reference type: {entity_type}")

        cache_key = (key_type, name.lower(), (source or "").upper())
        if cache_key in self._cache:
            return self._cache[cache_key]

        service = self.services.get(key_type)
        if service is None:
            return UnresolvedReference(name=name, error=f"Cannot resolve {entity_type}")
        try:
            entity = service.get(name, source)
        except EntityServiceError as e:
            logger.debug(f"Cannot resolve {entity_type} '{name}': {e}")
            return UnresolvedReference(name=name, error=f"Cannot resolve {entity_type}")

        result = entity if entity is not None else UnresolvedReference(
            name=name, error=f"{name} not found"
        )
        self._cache[cache_key] = result
        return result

    def resolve_reference(self, reference: ParsedReference) -> Any:
        return self.resolve(reference.tag, reference.name, reference.source)

    def resolve_text(self, text: str) -> ResolvedText:
        """Resolve every known tag in a passage and render it as plain text."""
        references = [(ref, self.resolve_reference(ref)) for ref in find_references(text)]
        return ResolvedText(text=convert_markup(text or ""), references=references)

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Tooltips
    # ------------------------------------------------------------------

    def tooltip_data(self, entity_type: str, entity: Any) -> dict[str, Any]:
        """Title, description and source line plus type-specific extras."""
        if isinstance(entity, UnresolvedReference):
            return {"title": entity.name, "description": entity.error, "source": ""}

        page = getattr(entity, "page", None)
        data: dict[str, Any] = {
            "title": entity.name,
            "description": getattr(entity, "description", "") or "",
            "source": f"{entity.source}, page {page if page is not None else '??'}",
        }

        key_type = TYPE_ALIASES.get(entity_type.lower())
        if key_type == "item" and isinstance(entity, EntityRecord):
            properties = entity.data.get("property") or []
            data["properties"] = [
                str(p.get("uid", "")) if isinstance(p, dict) else str(p).split("|")[0]
                for p in properties
            ]
            value = entity.data.get("value")
            data["value"] = format_value(value) if isinstance(value, int) else None
        elif key_type == "class" and isinstance(entity, ClassDefinition):
            data["hit_dice"] = f"d{entity.hit_die}"
            data["spellcasting"] = entity.spellcasting_ability
        elif key_type == "race" and isinstance(entity, RaceDefinition):
            data["size"] = entity.size
            data["speed"] = entity.speed
            data["ability"] = entity.ability_bonuses
        return data


__all__ = [
    "ParsedReference",
    "ReferenceResolver",
    "ResolvedText",
    "TYPE_ALIASES",
    "UnresolvedReference",
    "find_references",
    "format_value",
    "parse_reference",
]
