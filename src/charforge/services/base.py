"""
EntityService - lazy, cached access to one normalized entity collection.

A service loads its raw resource through the RawDataLoader on first use,
normalizes it once and keeps the result until a forced refresh. Lookups only
see entities whose source is currently allowed by the SourceCatalog; that
filtered view is rebuilt whenever the allowed set changes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Generic, TypeVar

from ..catalog import SourceCatalog, normalize_source_id
from ..loader import RawDataLoader

logger = logging.getLogger("charforge")

T = TypeVar("T")


class EntityServiceError(Exception):
    """Exception raised when a service is used before it is loaded."""
    pass


class EntityService(ABC, Generic[T]):
    """Base class for the per-type entity services."""

    resource_key: str = ""
    entity_type: str = "entity"

    def __init__(self, loader: RawDataLoader, catalog: SourceCatalog | None = None):
        self.loader = loader
        self.catalog = catalog
        self._entities: list[T] | None = None
        self._visible: list[T] | None = None
        self._lock = asyncio.Lock()
        self._refresh_listeners: list[Callable[[], None]] = []
        if catalog is not None:
            catalog.add_listener(self._on_sources_changed)

    @property
    def is_loaded(self) -> bool:
        return self._entities is not None

    async def initialize(self, force_refresh: bool = False) -> list[T]:
        """Load and normalize the collection. Cheap after the first call.

        Raises:
            DataLoaderError: If the raw resource cannot be loaded.
        """
        async with self._lock:
            if self._entities is None or force_refresh:
                payload = await self.loader.load(self.resource_key, force_refresh=force_refresh)
                self._entities = self.normalize_payload(payload)
                self._visible = None
                logger.info(f"Loaded {len(self._entities)} {self.entity_type} entities")
                self._notify_refreshed()
        return self.all()

    @abstractmethod
    def normalize_payload(self, payload: dict[str, Any]) -> list[T]:
        """Turn a loader payload into normalized entities."""
        pass

    def all(self) -> list[T]:
        """Every loaded entity whose source is allowed."""
        if self._entities is None:
            raise EntityServiceError(
                f"{type(self).__name__}.initialize() must be awaited first"
            )
        if self._visible is None:
            if self.catalog is None:
                self._visible = list(self._entities)
            else:
                self._visible = self.catalog.filter_by_source(self._entities)
        return self._visible

    def get(self, name: str, source: str | None = None) -> T | None:
        """Find an entity by case-insensitive exact name.

        When ``source`` is given, an entity from that source is preferred;
        otherwise (or when none matches) the first name match wins.
        """
        wanted = name.strip().lower()
        matches = [entity for entity in self.all() if entity.name.lower() == wanted]
        if not matches:
            return None
        if source:
            source_id = normalize_source_id(source)
            for entity in matches:
                if normalize_source_id(entity.source) == source_id:
                    return entity
        return matches[0]

    async def iter_chunks(self, chunk_size: int = 5) -> AsyncIterator[list[T]]:
        """Yield visible entities in slices, yielding to the event loop between them."""
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        entities = await self.initialize()
        for start in range(0, len(entities), chunk_size):
            yield entities[start:start + chunk_size]
            await asyncio.sleep(0)

    def invalidate(self) -> None:
        """Drop normalized entities; the next ``initialize`` normalizes again."""
        self._entities = None
        self._visible = None
        self._notify_refreshed()

    def add_refresh_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked whenever the loaded entities are replaced or dropped."""
        self._refresh_listeners.append(listener)

    def _notify_refreshed(self) -> None:
        for listener in self._refresh_listeners:
            listener()

    def _on_sources_changed(self, allowed: frozenset[str]) -> None:
        logger.debug(f"Allowed sources changed; refiltering {self.entity_type} entities")
        self._visible = None


__all__ = [
    "EntityService",
    "EntityServiceError",
]
