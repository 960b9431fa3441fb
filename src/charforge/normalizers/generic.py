"""
Normalization for spells, items and feats.

These only need enough shape for lookups and tooltips, so the raw record
is kept alongside a rendered description.
"""

import logging
from typing import Any

from ..models import EntityRecord
from .copies import resolve_copy
from .markup import make_id, render_description

logger = logging.getLogger("charforge")


class GenericNormalizer:
    """Normalize any named, sourced record into an EntityRecord."""

    def __init__(self, entity_type: str = "entity"):
        self.entity_type = entity_type

    def normalize(
        self, raw: dict[str, Any], siblings: list[dict[str, Any]] | None = None
    ) -> EntityRecord | None:
        try:
            if not isinstance(raw, dict):
                raise TypeError(f"expected an object, got {type(raw).__name__}")
            name, source = raw.get("name"), raw.get("source")
            if not isinstance(name, str) or not name.strip():
                raise ValueError("record has no name")
            if not isinstance(source, str) or not source.strip():
                raise ValueError("record has no source")

            record = resolve_copy(raw, siblings or []) if "_copy" in raw else raw
            page = record.get("page")
            return EntityRecord(
                id=make_id(name, source),
                name=name,
                source=source,
                page=page if isinstance(page, int) else None,
                description=render_description(record.get("entries"), skip_mechanical=False),
                data=record,
            )
        except Exception as e:
            name = raw.get("name", "<unnamed>") if isinstance(raw, dict) else "<invalid>"
            logger.warning(f"Failed to normalize {self.entity_type} '{name}': {e}")
            return None

    def normalize_all(self, raws: list[dict[str, Any]]) -> list[EntityRecord]:
        results = []
        for raw in raws:
            record = self.normalize(raw, raws)
            if record is not None:
                results.append(record)
        return results


__all__ = ["GenericNormalizer"]
