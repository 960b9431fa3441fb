"""
Concrete entity services, one per resource.
"""

from typing import Any

from ..models import (
    ClassDefinition,
    EntityRecord,
    NormalizedBackground,
    RaceDefinition,
    SubclassDefinition,
)
from ..normalizers import BackgroundNormalizer, ClassNormalizer, GenericNormalizer, RaceNormalizer
from .base import EntityService


class BackgroundService(EntityService[NormalizedBackground]):
    resource_key = "backgrounds"
    entity_type = "background"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.normalizer = BackgroundNormalizer()

    def normalize_payload(self, payload: dict[str, Any]) -> list[NormalizedBackground]:
        return self.normalizer.normalize_all(
            payload.get("background", []), payload.get("backgroundFluff", [])
        )


class RaceService(EntityService[RaceDefinition]):
    resource_key = "races"
    entity_type = "race"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.normalizer = RaceNormalizer()

    def normalize_payload(self, payload: dict[str, Any]) -> list[RaceDefinition]:
        return self.normalizer.normalize_all(
            payload.get("race", []),
            payload.get("subrace", []),
            payload.get("raceFluff", []),
        )


class ClassService(EntityService[ClassDefinition]):
    resource_key = "classes"
    entity_type = "class"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.normalizer = ClassNormalizer()

    def normalize_payload(self, payload: dict[str, Any]) -> list[ClassDefinition]:
        return self.normalizer.normalize_all(
            payload.get("class", []),
            payload.get("subclass", []),
            payload.get("classFeature", []),
            payload.get("subclassFeature", []),
        )

    def get_subclass(
        self, class_name: str, subclass_name: str, source: str | None = None
    ) -> SubclassDefinition | None:
        """Find a subclass by full or short name, case-insensitively."""
        class_data = self.get(class_name, source)
        if class_data is None:
            return None
        wanted = subclass_name.strip().lower()
        for subclass in class_data.subclasses:
            if wanted in (subclass.name.lower(), subclass.short_name.lower()):
                return subclass
        return None


class GenericEntityService(EntityService[EntityRecord]):
    """Spells, items and feats: one data key, normalized generically."""

    data_key: str = ""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.normalizer = GenericNormalizer(self.entity_type)

    def normalize_payload(self, payload: dict[str, Any]) -> list[EntityRecord]:
        return self.normalizer.normalize_all(payload.get(self.data_key, []))


class SpellService(GenericEntityService):
    resource_key = "spells"
    entity_type = "spell"
    data_key = "spell"


class ItemService(GenericEntityService):
    resource_key = "items"
    entity_type = "item"
    data_key = "item"


class FeatService(GenericEntityService):
    resource_key = "feats"
    entity_type = "feat"
    data_key = "feat"


__all__ = [
    "BackgroundService",
    "ClassService",
    "FeatService",
    "GenericEntityService",
    "ItemService",
    "RaceService",
    "SpellService",
]
