"""
Background normalization.

Turns raw 5etools background records, legacy or modern, into
NormalizedBackground. One malformed record is logged and skipped; it never
aborts the rest of the batch.
"""

import logging
from typing import Any

from ..models import Feature, Fluff, NormalizedBackground, Variant
from .copies import copies_entity, copy_target, directive_items, iter_directives, resolve_copy
from .markup import convert_markup, make_id, render_description, render_entries
from .strategies import SchemaStrategy, strategy_for

logger = logging.getLogger("charforge")

FluffIndex = dict[tuple[str, str], dict[str, Any]]

VARIANT_PREFIX = "variant"
MIN_FLUFF_DESCRIPTION = 20


def build_fluff_index(fluff_records: list[dict[str, Any]] | None) -> FluffIndex:
    """Index fluff records by lowercased ``(name, source)``."""
    index: FluffIndex = {}
    for record in fluff_records or []:
        if not isinstance(record, dict):
            continue
        name, source = record.get("name"), record.get("source")
        if isinstance(name, str) and isinstance(source, str):
            index[(name.lower(), source.lower())] = record
    return index


def is_variant_copy(raw: dict[str, Any]) -> bool:
    """True for ``_copy`` records that describe a variant of another entity."""
    name = raw.get("name")
    return (
        copy_target(raw) is not None
        and isinstance(name, str)
        and name.strip().lower().startswith(VARIANT_PREFIX)
    )


def fluff_from_record(record: dict[str, Any] | None) -> Fluff:
    if not isinstance(record, dict):
        return Fluff()
    images = [image for image in record.get("images") or [] if isinstance(image, dict)]
    return Fluff(entries=render_entries(record.get("entries")), images=images)


class BackgroundNormalizer:
    """Normalize raw background records.

    Usage:
        normalizer = BackgroundNormalizer()
        backgrounds = normalizer.normalize_all(payload["background"], payload["backgroundFluff"])
    """

    def normalize(
        self,
        raw: dict[str, Any],
        fluff_index: FluffIndex | None = None,
        siblings: list[dict[str, Any]] | None = None,
    ) -> NormalizedBackground | None:
        """Normalize one record, returning None (and logging) if it is malformed.

        Args:
            raw: Raw background record. Never modified.
            fluff_index: Fluff records from ``build_fluff_index``.
            siblings: The other records of the same collection, searched
                for ``_copy`` bases and variant records.
        """
        try:
            return self._normalize(raw, fluff_index or {}, siblings or [])
        except Exception as e:
            name = raw.get("name", "<unnamed>") if isinstance(raw, dict) else "<invalid>"
            logger.warning(f"Failed to normalize background '{name}': {e}")
            return None

    def normalize_all(
        self,
        raws: list[dict[str, Any]],
        fluff_records: list[dict[str, Any]] | None = None,
    ) -> list[NormalizedBackground]:
        """Normalize a collection. Variant copies are folded into their base."""
        fluff_index = build_fluff_index(fluff_records)
        results = []
        failed = 0
        for raw in raws:
            if isinstance(raw, dict) and is_variant_copy(raw) and self._has_base(raw, raws):
                continue
            background = self.normalize(raw, fluff_index, raws)
            if background is None:
                failed += 1
            else:
                results.append(background)
        logger.debug(f"Normalized {len(results)} backgrounds ({failed} failed)")
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize(
        self,
        raw: dict[str, Any],
        fluff_index: FluffIndex,
        siblings: list[dict[str, Any]],
    ) -> NormalizedBackground:
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("record has no name")
        source = raw.get("source")
        if not isinstance(source, str) or not source.strip():
            raise ValueError("record has no source")

        record = resolve_copy(raw, siblings) if "_copy" in raw else raw
        strategy = strategy_for(record)

        fluff = self._extract_fluff(record, fluff_index)
        description = render_description(record.get("entries"))
        if not description:
            description = next(
                (text for text in fluff.entries if len(text) > MIN_FLUFF_DESCRIPTION),
                f"The {name} background.",
            )

        page = record.get("page")
        return NormalizedBackground(
            id=make_id(name, source),
            name=name,
            source=source,
            page=page if isinstance(page, int) else None,
            schema_variant=strategy.variant,
            description=description,
            proficiencies=strategy.extract_proficiencies(record),
            starting_equipment=strategy.extract_equipment(record),
            features=strategy.extract_features(record),
            characteristics=strategy.extract_characteristics(record),
            variants=self._extract_variants(record, name, source, siblings),
            fluff=fluff,
            ability_scores=strategy.extract_ability_scores(record),
            feats=strategy.extract_feats(record),
        )

    @staticmethod
    def _has_base(raw: dict[str, Any], raws: list[dict[str, Any]]) -> bool:
        target = copy_target(raw)
        return any(
            isinstance(other, dict)
            and str(other.get("name", "")).lower() == target[0]
            and str(other.get("source", "")).lower() == target[1]
            for other in raws
        )

    @staticmethod
    def _extract_fluff(raw: dict[str, Any], fluff_index: FluffIndex) -> Fluff:
        inline = raw.get("fluff")
        if isinstance(inline, dict):
            return fluff_from_record(inline)
        return fluff_from_record(
            fluff_index.get((raw["name"].lower(), raw["source"].lower()))
        )

    def _extract_variants(
        self,
        raw: dict[str, Any],
        name: str,
        source: str,
        siblings: list[dict[str, Any]],
    ) -> list[Variant]:
        variants: list[Variant] = []

        for explicit in raw.get("variants") or []:
            if not isinstance(explicit, dict) or not isinstance(explicit.get("name"), str):
                continue
            features = [
                Feature(
                    name=str(feature.get("name", "")),
                    description=feature.get("description")
                    or "\n\n".join(render_entries(feature.get("entries"))),
                )
                for feature in explicit.get("features") or []
                if isinstance(feature, dict) and feature.get("name")
            ]
            variants.append(Variant(
                name=explicit["name"],
                source=explicit.get("source") or source,
                description=explicit.get("description")
                or render_description(explicit.get("entries")),
                features=features,
            ))

        for sibling in siblings:
            if not isinstance(sibling, dict) or not is_variant_copy(sibling):
                continue
            if not copies_entity(sibling, name, source):
                continue
            try:
                variants.append(self._variant_from_copy(sibling, name, source))
            except Exception as e:
                logger.debug(f"Ignoring unreadable variant '{sibling.get('name')}': {e}")
        return variants

    @staticmethod
    def _variant_from_copy(sibling: dict[str, Any], base_name: str, base_source: str) -> Variant:
        """Read a variant's description and features from its ``_mod`` directives."""
        features: list[Feature] = []
        texts: list[str] = []

        mod = sibling["_copy"].get("_mod")
        if isinstance(mod, dict):
            for directive in iter_directives(mod.get("entries")):
                if directive["mode"] == "removeArr":
                    continue
                for item in directive_items(directive):
                    if isinstance(item, str):
                        texts.append(convert_markup(item))
                    elif isinstance(item, dict) and isinstance(item.get("name"), str):
                        features.append(SchemaStrategy._feature_from_block(item))
                    elif isinstance(item, dict):
                        texts.extend(render_entries([item], skip_mechanical=True))

        texts.extend(render_entries(sibling.get("entries"), skip_mechanical=True))
        return Variant(
            name=sibling["name"],
            source=sibling.get("source") or base_source,
            description="\n\n".join(texts) or f"Variant of {base_name}.",
            features=features,
        )


__all__ = [
    "BackgroundNormalizer",
    "FluffIndex",
    "build_fluff_index",
    "fluff_from_record",
    "is_variant_copy",
]
