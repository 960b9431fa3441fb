"""
SourceCatalog - registry of rulebook sources and the allowed-source selection.

The catalog loads 5etools ``books.json`` once, keeps only sources that carry
player-facing content and are not on the ban-list, and owns the set of
sources a character may draw from. Changing that set notifies registered
listeners so dependent caches can be dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, TypeVar

from .loader import RawDataLoader
from .models import Source, SourceContent

logger = logging.getLogger("charforge")

T = TypeVar("T")

NotifyFn = Callable[[str, str], None]
AllowedSourcesListener = Callable[[frozenset[str]], None]


# Sources never offered regardless of their content
BANNED_SOURCES = frozenset({"MPMM", "AAG", "BGG", "SATO", "BMT", "MOT", "MMPM"})

# Content-section keywords that mark a source as player-facing
ELIGIBILITY_KEYWORDS = (
    "Races",
    "Classes",
    "Backgrounds",
    "Feats",
    "Spells",
    "Equipment",
    "Magic Items",
    "Subclasses",
    "Subraces",
    "Class Options",
    "Character Options",
    "Customization Options",
    "Multiclassing",
    "Personality and Background",
)

# One of these must always be allowed
CORE_RULEBOOKS = ("PHB", "XPHB")

GROUP_PRIORITY: dict[str, int] = {
    "core": 0,
    "setting": 1,
    "supplement": 2,
}
DEFAULT_GROUP_PRIORITY = 3

# Alternate spellings of source ids seen in saved characters and older data
SOURCE_ALIASES: dict[str, str] = {
    "PHB-2014": "PHB",
    "PHB_2014": "PHB",
    "PHB2014": "PHB",
    "PHB-2024": "XPHB",
    "PHB_2024": "XPHB",
}

# Display names used when a source is not in the catalog
FALLBACK_SOURCE_NAMES: dict[str, str] = {
    "PHB": "Player's Handbook (2014)",
    "XPHB": "Player's Handbook (2024)",
    "DMG": "Dungeon Master's Guide",
    "MM": "Monster Manual",
    "XGE": "Xanathar's Guide to Everything",
    "TCE": "Tasha's Cauldron of Everything",
    "SCAG": "Sword Coast Adventurer's Guide",
    "VGM": "Volo's Guide to Monsters",
}

CORE_SOURCE_WARNING = "At least one core rulebook (PHB or XPHB) must be selected"


class SourceCatalogError(Exception):
    """Raised when the catalog is used incorrectly."""
    pass


def _log_notification(message: str, level: str) -> None:
    logger.log(logging.getLevelNamesMapping().get(level.upper(), logging.WARNING), message)


def normalize_source_id(code: str | None) -> str:
    """Uppercase a source code and fold known aliases (``PHB-2014`` → ``PHB``)."""
    if not code:
        return ""
    upper = code.strip().upper()
    return SOURCE_ALIASES.get(upper, upper)


def source_from_raw(raw: dict[str, Any]) -> Source:
    """Build a Source from a 5etools ``books.json`` record."""
    source_id = normalize_source_id(raw.get("id") or raw.get("source"))
    if not source_id:
        raise ValueError("source record has no id")

    contents = []
    for section in raw.get("contents") or []:
        if not isinstance(section, dict):
            continue
        headers = []
        for header in section.get("headers") or []:
            if isinstance(header, str):
                headers.append(header)
            elif isinstance(header, dict) and header.get("header"):
                headers.append(str(header["header"]))
        contents.append(SourceContent(name=str(section.get("name", "")), headers=headers))

    group = str(raw.get("group") or "supplement").lower()
    return Source(
        id=source_id,
        name=raw.get("name") or source_id,
        abbreviation=raw.get("abbreviation") or source_id,
        group=group,
        is_core=bool(raw.get("isCore", group == "core")),
        version=raw.get("version"),
        has_errata=bool(raw.get("hasErrata", False)),
        target_language=raw.get("targetLanguage", "en"),
        contents=contents,
        is_default=bool(raw.get("isDefault", source_id in CORE_RULEBOOKS)),
    )


def is_eligible(source: Source) -> bool:
    """True if any content section or header names player-facing content."""
    keywords = [keyword.lower() for keyword in ELIGIBILITY_KEYWORDS]
    for section in source.contents:
        texts = [section.name, *section.headers]
        for text in texts:
            lowered = text.lower()
            if any(keyword in lowered for keyword in keywords):
                return True
    return False


class SourceCatalog:
    """
    Filtered registry of sources plus the current allowed-source selection.

    Lookups are pure reads against the filtered set. ``update_allowed_sources``
    validates the whole new selection before changing anything and rejects
    selections without a core rulebook.
    """

    def __init__(
        self,
        loader: RawDataLoader | None = None,
        allowed_sources: Iterable[str] | None = None,
        notify: NotifyFn | None = None,
    ):
        self.loader = loader
        self.notify = notify or _log_notification
        if allowed_sources is None:
            allowed_sources = loader.config.allowed_sources if loader else CORE_RULEBOOKS[:1]
        self._allowed: set[str] = {normalize_source_id(code) for code in allowed_sources}
        self._sources: dict[str, Source] = {}
        self._listeners: list[AllowedSourcesListener] = []
        self._initialized = False

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, raw_sources: list[dict[str, Any]] | None = None) -> None:
        """Load and filter source records. Does nothing if already initialized.

        Args:
            raw_sources: Records in ``books.json`` shape. When omitted they
                are loaded through the data loader.

        Raises:
            SourceCatalogError: If no records are given and there is no loader.
            DataLoaderError: If loading ``books`` fails.
        """
        if self._initialized:
            logger.debug("Source catalog already initialized")
            return

        if raw_sources is None:
            if self.loader is None:
                raise SourceCatalogError("SourceCatalog needs a loader or raw_sources")
            payload = await self.loader.load("books")
            raw_sources = payload.get("book", [])

        kept = banned = ineligible = 0
        for raw in raw_sources:
            try:
                source = source_from_raw(raw)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed source record: {e}")
                continue

            if self.is_banned_source(source.id):
                banned += 1
                continue
            if not is_eligible(source):
                ineligible += 1
                continue
            self._sources[source.id] = source
            kept += 1

        self._initialized = True
        logger.info(
            f"Source catalog initialized: {kept} sources "
            f"({banned} banned, {ineligible} without player content)"
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def is_valid_source(self, code: str) -> bool:
        return normalize_source_id(code) in self._sources

    def get_source_details(self, code: str) -> Source | None:
        return self._sources.get(normalize_source_id(code))

    def is_source_allowed(self, code: str) -> bool:
        source_id = normalize_source_id(code)
        return source_id in self._sources and source_id in self._allowed

    @staticmethod
    def is_banned_source(code: str) -> bool:
        return normalize_source_id(code) in BANNED_SOURCES

    def is_core_source(self, code: str) -> bool:
        source_id = normalize_source_id(code)
        if source_id in CORE_RULEBOOKS:
            return True
        source = self._sources.get(source_id)
        return source is not None and source.is_core

    def get_allowed_sources(self) -> list[str]:
        return sorted(self._allowed, key=self._sort_key_for_id)

    def get_sources(self) -> list[Source]:
        """All eligible sources in display order."""
        return self.sort_sources(self._sources.values())

    @classmethod
    def sort_sources(cls, sources: Iterable[Source]) -> list[Source]:
        """PHB, then XPHB, then by group priority; ties keep input order."""
        return sorted(sources, key=lambda source: cls._sort_key(source.id, source.group))

    @staticmethod
    def _sort_key(source_id: str, group: str) -> tuple[int, int]:
        if source_id in CORE_RULEBOOKS:
            return (0, CORE_RULEBOOKS.index(source_id))
        return (1, GROUP_PRIORITY.get(group, DEFAULT_GROUP_PRIORITY))

    def _sort_key_for_id(self, source_id: str) -> tuple[int, int, str]:
        source = self._sources.get(source_id)
        group = source.group if source else ""
        return (*self._sort_key(source_id, group), source_id)

    def format_source_name(self, code: str) -> str:
        source_id = normalize_source_id(code)
        source = self._sources.get(source_id)
        if source is not None:
            return source.name
        return FALLBACK_SOURCE_NAMES.get(source_id, source_id)

    def filter_by_source(self, entities: Iterable[T]) -> list[T]:
        """Keep entities whose ``source`` (attribute or key) is allowed."""
        result = []
        for entity in entities:
            if isinstance(entity, dict):
                source = entity.get("source")
            else:
                source = getattr(entity, "source", None)
            if source and normalize_source_id(source) in self._allowed:
                result.append(entity)
        return result

    # ------------------------------------------------------------------
    # Allowed-source selection
    # ------------------------------------------------------------------

    def add_listener(self, listener: AllowedSourcesListener) -> None:
        """Register a callback invoked with the new allowed set after each change."""
        self._listeners.append(listener)

    def update_allowed_sources(self, sources: Iterable[str]) -> bool:
        """Replace the allowed set.

        The selection must include PHB or XPHB and may only name known,
        non-banned sources. On rejection a warning goes through ``notify``
        and nothing changes.

        Raises:
            SourceCatalogError: If the catalog has not been initialized.
        """
        self._require_initialized()
        new_allowed = {normalize_source_id(code) for code in sources if code}

        unknown = sorted(code for code in new_allowed if code not in self._sources)
        if unknown:
            self.notify(f"Unknown or unavailable sources: {', '.join(unknown)}", "warning")
            return False

        if not any(code in new_allowed for code in CORE_RULEBOOKS):
            self.notify(CORE_SOURCE_WARNING, "warning")
            return False

        if new_allowed == self._allowed:
            return True

        self._allowed = new_allowed
        logger.info(f"Allowed sources updated: {', '.join(self.get_allowed_sources())}")
        self._notify_listeners()
        return True

    def add_allowed_source(self, code: str) -> bool:
        self._require_initialized()
        source_id = normalize_source_id(code)
        if source_id not in self._sources:
            self.notify(f"Unknown or unavailable source: {code}", "warning")
            return False
        if source_id in self._allowed:
            return True
        return self.update_allowed_sources(self._allowed | {source_id})

    def remove_allowed_source(self, code: str) -> bool:
        self._require_initialized()
        source_id = normalize_source_id(code)
        if source_id not in self._allowed:
            return False
        remaining = self._allowed - {source_id}
        if not any(core in remaining for core in CORE_RULEBOOKS):
            self.notify(f"Cannot remove {self.format_source_name(source_id)}: {CORE_SOURCE_WARNING}", "warning")
            return False
        return self.update_allowed_sources(remaining)

    def _notify_listeners(self) -> None:
        snapshot = frozenset(self._allowed)
        for listener in self._listeners:
            listener(snapshot)

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise SourceCatalogError("SourceCatalog.initialize() must be awaited first")


__all__ = [
    "BANNED_SOURCES",
    "CORE_RULEBOOKS",
    "CORE_SOURCE_WARNING",
    "ELIGIBILITY_KEYWORDS",
    "SourceCatalog",
    "SourceCatalogError",
    "is_eligible",
    "normalize_source_id",
    "source_from_raw",
]
