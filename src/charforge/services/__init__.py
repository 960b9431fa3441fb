"""
Entity services: lazy, cached, source-filtered access to normalized content.
"""

from .base import EntityService, EntityServiceError
from .entities import (
    BackgroundService,
    ClassService,
    FeatService,
    GenericEntityService,
    ItemService,
    RaceService,
    SpellService,
)

__all__ = [
    "BackgroundService",
    "ClassService",
    "EntityService",
    "EntityServiceError",
    "FeatService",
    "GenericEntityService",
    "ItemService",
    "RaceService",
    "SpellService",
]
