"""
TTL + LRU cache for raw rules resources.

Each entry holds one loaded resource payload (the parsed JSON of a primary
file plus its fluff companion). Entries expire after their TTL and the
cache holds at most ``max_entries`` keys, evicting the least recently used.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("charforge")


@dataclass
class CacheEntry:
    """Single cached resource.

    Attributes:
        key: Resource key, e.g. ``"backgrounds"``.
        data: Parsed payload.
        created_at: Timestamp when the entry was stored.
        ttl: Time to live in seconds.
        generation: Fetch generation that produced the payload.
    """
    key: str
    data: dict[str, Any]
    created_at: float
    ttl: int
    generation: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourceCacheStats:
    """Statistics for the resource cache.

    Attributes:
        total_entries: Number of entries currently in cache.
        expired_entries: Entries present but past their TTL.
        pending_loads: In-flight loads reported by the owning loader.
        average_age: Mean age of entries in seconds.
        hit_count: Successful lookups.
        miss_count: Failed lookups, including expired hits.
        evicted_count: Entries dropped by the LRU bound.
    """
    total_entries: int
    expired_entries: int
    pending_loads: int
    average_age: float
    hit_count: int
    miss_count: int
    evicted_count: int


class ResourceCache:
    """Bounded TTL cache keyed by resource name.

    Usage:
        cache = ResourceCache(max_entries=50, default_ttl=3600)
        cache.store("backgrounds", payload)
        payload = cache.get("backgrounds")
    """

    def __init__(self, max_entries: int = 50, default_ttl: int = 3600) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._hit_count = 0
        self._miss_count = 0
        self._evicted_count = 0

    def store(
        self,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
        generation: int = 0,
    ) -> None:
        """Store a payload, replacing any existing entry and evicting LRU keys."""
        effective_ttl = ttl if ttl is not None else self.default_ttl

        self._cache[key] = CacheEntry(
            key=key,
            data=data,
            created_at=time.time(),
            ttl=effective_ttl,
            generation=generation,
        )
        self._cache.move_to_end(key)

        while len(self._cache) > self.max_entries:
            evicted_key, _ = self._cache.popitem(last=False)
            self._evicted_count += 1
            logger.debug(f"Resource cache: evicted least recently used '{evicted_key}'")

        logger.debug(f"Resource cache: stored '{key}' (TTL: {effective_ttl}s)")

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached payload, or None if missing or expired.

        A hit marks the entry as most recently used. Expired entries are
        removed on access.
        """
        entry = self._cache.get(key)
        if entry is None:
            self._miss_count += 1
            return None

        if self._is_expired(entry):
            del self._cache[key]
            self._miss_count += 1
            logger.debug(f"Resource cache: entry '{key}' expired")
            return None

        self._cache.move_to_end(key)
        self._hit_count += 1
        logger.debug(f"Resource cache: hit for '{key}'")
        return entry.data

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry without touching recency or counters."""
        return self._cache.get(key)

    def is_cached(self, key: str) -> bool:
        """True if the key is present and not expired."""
        entry = self._cache.get(key)
        return entry is not None and not self._is_expired(entry)

    def clear(self, keys: list[str] | None = None) -> int:
        """Remove the given keys, or everything when ``keys`` is None.

        Returns:
            Number of entries removed.
        """
        if keys is None:
            count = len(self._cache)
            self._cache.clear()
        else:
            count = 0
            for key in keys:
                if self._cache.pop(key, None) is not None:
                    count += 1
        if count:
            logger.debug(f"Resource cache: cleared {count} entries")
        return count

    def clear_expired(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        expired_keys = [
            key for key, entry in self._cache.items() if self._is_expired(entry)
        ]
        for key in expired_keys:
            del self._cache[key]
        if expired_keys:
            logger.debug(f"Resource cache: cleanup removed {len(expired_keys)} expired entries")
        return len(expired_keys)

    def get_stats(self, pending_loads: int = 0) -> ResourceCacheStats:
        now = time.time()
        entries = list(self._cache.values())
        ages = [now - entry.created_at for entry in entries]
        return ResourceCacheStats(
            total_entries=len(entries),
            expired_entries=sum(1 for entry in entries if self._is_expired(entry, now)),
            pending_loads=pending_loads,
            average_age=sum(ages) / len(ages) if ages else 0.0,
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            evicted_count=self._evicted_count,
        )

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._cache)

    def _is_expired(self, entry: CacheEntry, now: float | None = None) -> bool:
        current = now if now is not None else time.time()
        return (current - entry.created_at) > entry.ttl

    @property
    def size(self) -> int:
        """Return the number of entries currently in the cache."""
        return len(self._cache)


__all__ = [
    "CacheEntry",
    "ResourceCache",
    "ResourceCacheStats",
]
