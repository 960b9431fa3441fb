"""
Raw data loader for 5etools JSON resources.

This module handles:
- Fetching resource files over HTTP (httpx) or from a local data directory
- Retrying transient failures with exponential backoff
- Caching parsed payloads with TTL expiry and an LRU bound
- Loading optional "fluff" companions without failing the primary load
- Fencing concurrent loads so a stale fetch never overwrites a newer one
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator

import httpx

from ..config import CharforgeConfig
from .cache import ResourceCache, ResourceCacheStats


logger = logging.getLogger("charforge")


# =============================================================================
# Resource Table
# =============================================================================

@dataclass(frozen=True)
class ResourceSpec:
    """Where a resource lives and which JSON keys hold its records.

    The first entry of ``data_keys`` is the primary key; a payload without
    it is treated as malformed. ``indexed`` resources point ``path`` at an
    ``index.json`` mapping to per-book files in the same directory.
    """
    key: str
    path: str
    data_keys: tuple[str, ...]
    fluff_path: str | None = None
    fluff_key: str | None = None
    ttl: int | None = None
    indexed: bool = False

    @property
    def primary_key(self) -> str:
        return self.data_keys[0]


RESOURCES: dict[str, ResourceSpec] = {
    "books": ResourceSpec("books", "books.json", ("book",), ttl=7200),
    "backgrounds": ResourceSpec(
        "backgrounds",
        "backgrounds.json",
        ("background",),
        fluff_path="fluff-backgrounds.json",
        fluff_key="backgroundFluff",
        ttl=7200,
    ),
    "races": ResourceSpec(
        "races",
        "races.json",
        ("race", "subrace"),
        fluff_path="fluff-races.json",
        fluff_key="raceFluff",
        ttl=7200,
    ),
    "classes": ResourceSpec(
        "classes",
        "class/index.json",
        ("class", "subclass", "classFeature", "subclassFeature"),
        ttl=3600,
        indexed=True,
    ),
    "spells": ResourceSpec("spells", "spells/index.json", ("spell",), ttl=3600, indexed=True),
    "items": ResourceSpec("items", "items.json", ("item",), ttl=3600),
    "feats": ResourceSpec("feats", "feats.json", ("feat",), ttl=3600),
}

FLUFF_MAX_RETRIES = 2


class DataLoaderError(Exception):
    """Error fetching or parsing a raw data resource."""

    pass


class _TransientFetchError(Exception):
    """Internal marker for failures worth retrying."""


class RawDataLoader:
    """
    Fetches and caches raw 5etools resources.

    Payloads are cached per resource key. A cached payload is returned until
    it expires or the caller passes ``force_refresh``. Every fetch takes a
    generation number for its key, and only the newest generation is allowed
    to write the cache.
    """

    def __init__(
        self,
        config: CharforgeConfig | None = None,
        client: httpx.AsyncClient | None = None,
        resources: dict[str, ResourceSpec] | None = None,
    ):
        self.config = config or CharforgeConfig()
        self.resources = dict(resources or RESOURCES)
        self._client = client
        self._owns_client = client is None
        self._cache = ResourceCache(
            max_entries=self.config.max_cache_entries,
            default_ttl=self.config.cache_ttl,
        )
        self._generations: dict[str, int] = {}
        self._pending: dict[str, asyncio.Task] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    async def load(
        self,
        key: str,
        *,
        max_retries: int | None = None,
        force_refresh: bool = False,
    ) -> dict[str, Any]:
        """
        Load a resource payload, from cache when possible.

        Args:
            key: Resource key from the resource table.
            max_retries: Attempts for the primary file; defaults to config.
            force_refresh: Bypass the cache and fetch again.

        Returns:
            Dict holding every data key of the resource plus its fluff key.

        Raises:
            DataLoaderError: On hard failures or when retries are exhausted.
        """
        spec = self._resolve_spec(key)

        if not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            pending = self._pending.get(key)
            if pending is not None:
                logger.debug(f"Joining in-flight load of '{key}'")
                return await pending

        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation

        task = asyncio.ensure_future(self._load_resource(spec, max_retries))
        self._pending[key] = task
        try:
            payload = await task
        finally:
            if self._pending.get(key) is task:
                del self._pending[key]

        if generation == self._generations[key]:
            self._cache.store(key, payload, ttl=spec.ttl, generation=generation)
        else:
            logger.debug(
                f"Discarding stale load of '{key}' "
                f"(generation {generation}, current {self._generations[key]})"
            )
        return payload

    async def iter_chunks(
        self,
        key: str,
        chunk_size: int = 5,
        field: str | None = None,
        force_refresh: bool = False,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield fixed-size slices of a loaded resource array.

        Control returns to the event loop between chunks so callers can
        render progressively.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        spec = self._resolve_spec(key)
        payload = await self.load(key, force_refresh=force_refresh)
        items = payload.get(field or spec.primary_key, [])
        for start in range(0, len(items), chunk_size):
            yield items[start:start + chunk_size]
            await asyncio.sleep(0)

    def is_cached(self, key: str) -> bool:
        return self._cache.is_cached(key)

    def clear_cache(self, keys: list[str] | None = None) -> int:
        return self._cache.clear(keys)

    def clear_expired(self) -> int:
        return self._cache.clear_expired()

    def get_cache_stats(self) -> ResourceCacheStats:
        return self._cache.get_stats(pending_loads=len(self._pending))

    def generation(self, key: str) -> int:
        """Latest fetch generation issued for a key (0 if never fetched)."""
        return self._generations.get(key, 0)

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    async def close(self) -> None:
        """Close the HTTP client if this loader created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RawDataLoader":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Resource Assembly
    # =========================================================================

    def _resolve_spec(self, key: str) -> ResourceSpec:
        try:
            return self.resources[key]
        except KeyError:
            raise DataLoaderError(f"Unknown resource: {key}") from None

    async def _load_resource(
        self, spec: ResourceSpec, max_retries: int | None
    ) -> dict[str, Any]:
        """Fetch primary and fluff data concurrently and merge them."""
        attempts = max_retries if max_retries is not None else self.config.max_retries

        if spec.fluff_path:
            primary, fluff = await asyncio.gather(
                self._load_primary(spec, attempts),
                self._load_fluff(spec),
            )
        else:
            primary = await self._load_primary(spec, attempts)
            fluff = []

        payload: dict[str, Any] = {
            data_key: primary.get(data_key, []) for data_key in spec.data_keys
        }
        if spec.fluff_key:
            payload[spec.fluff_key] = fluff

        logger.info(
            f"Loaded resource '{spec.key}': "
            f"{len(payload[spec.primary_key])} {spec.primary_key} entries"
        )
        return payload

    async def _load_primary(self, spec: ResourceSpec, attempts: int) -> dict[str, Any]:
        if spec.indexed:
            return await self._load_indexed(spec, attempts)

        data = await self._fetch_json(spec.path, attempts)
        self._validate_primary(spec, data, spec.path)
        return data

    async def _load_indexed(self, spec: ResourceSpec, attempts: int) -> dict[str, Any]:
        """Fetch index.json, then every file it lists, and merge the data keys."""
        index = await self._fetch_json(spec.path, attempts)
        if not isinstance(index, dict) or not index:
            raise DataLoaderError(f"Invalid or empty index for '{spec.key}': {spec.path}")

        base_dir = spec.path.rsplit("/", 1)[0] if "/" in spec.path else ""
        filenames = [
            fname
            for fname in index.values()
            if isinstance(fname, str) and fname.endswith(".json")
        ]
        semaphore = asyncio.Semaphore(self.config.download_concurrency)

        async def _download_one(filename: str) -> dict[str, Any]:
            async with semaphore:
                path = f"{base_dir}/{filename}" if base_dir else filename
                return await self._fetch_json(path, attempts)

        results = await asyncio.gather(
            *(_download_one(fname) for fname in filenames),
            return_exceptions=True,
        )

        merged: dict[str, list] = {data_key: [] for data_key in spec.data_keys}
        for filename, result in zip(filenames, results):
            if isinstance(result, Exception):
                raise DataLoaderError(
                    f"Failed to load '{spec.key}' file {filename}: {result}"
                ) from result
            if not isinstance(result, dict):
                raise DataLoaderError(f"Invalid data in {filename}: expected an object")
            for data_key in spec.data_keys:
                merged[data_key].extend(result.get(data_key, []))

        logger.debug(f"Merged {len(filenames)} files for '{spec.key}'")
        return merged

    async def _load_fluff(self, spec: ResourceSpec) -> list[dict[str, Any]]:
        """Fetch the fluff companion; failures degrade to an empty list."""
        try:
            data = await self._fetch_json(spec.fluff_path, FLUFF_MAX_RETRIES)
        except DataLoaderError as e:
            logger.warning(f"Fluff for '{spec.key}' unavailable, continuing without it: {e}")
            return []
        if not isinstance(data, dict):
            logger.warning(f"Fluff for '{spec.key}' is malformed, continuing without it")
            return []
        fluff = data.get(spec.fluff_key, [])
        return fluff if isinstance(fluff, list) else []

    @staticmethod
    def _validate_primary(spec: ResourceSpec, data: Any, path: str) -> None:
        if not isinstance(data, dict) or not data:
            raise DataLoaderError(f"Invalid or empty {spec.key} data in {path}")
        if not isinstance(data.get(spec.primary_key), list):
            raise DataLoaderError(
                f"Invalid or empty {spec.key} data in {path}: missing '{spec.primary_key}'"
            )

    # =========================================================================
    # Fetch with Retry
    # =========================================================================

    async def _fetch_json(self, path: str, attempts: int) -> Any:
        """
        Fetch and parse one JSON file, retrying transient failures.

        Timeouts, transport errors, 429 and 5xx responses, and local I/O
        errors are retried with exponential backoff. Client errors, missing
        files and malformed JSON fail immediately.

        Raises:
            DataLoaderError: If the fetch fails.
        """
        attempts = max(1, attempts)
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                if self.config.data_dir is not None:
                    return await self._read_local(path)
                return await self._read_remote(path)
            except _TransientFetchError as e:
                last_error = e.__cause__ or e
                logger.warning(
                    f"Transient failure fetching {path}, "
                    f"attempt {attempt + 1}/{attempts}: {last_error}"
                )
                if attempt + 1 < attempts:
                    await asyncio.sleep(self.config.retry_delay * (2 ** attempt))

        logger.error(f"Giving up on {path} after {attempts} attempts")
        raise DataLoaderError(
            f"Failed to fetch {path} after {attempts} attempts: {last_error}"
        ) from last_error

    async def _read_remote(self, path: str) -> Any:
        url = f"{self.config.data_url.rstrip('/')}/{path}"
        client = self._get_client()
        try:
            response = await client.get(url)
            if response.status_code == 429:
                raise _TransientFetchError(f"Rate limited fetching {url}")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500:
                raise _TransientFetchError(str(e)) from e
            raise DataLoaderError(f"HTTP error: {e}") from e
        except httpx.TransportError as e:
            raise _TransientFetchError(str(e)) from e

        try:
            return response.json()
        except ValueError as e:
            raise DataLoaderError(f"Malformed JSON in {url}: {e}") from e

    async def _read_local(self, path: str) -> Any:
        file_path = Path(self.config.data_dir) / path
        try:
            text = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise DataLoaderError(f"Resource file not found: {file_path}") from e
        except UnicodeDecodeError as e:
            raise DataLoaderError(f"Resource file is not valid UTF-8: {file_path}") from e
        except OSError as e:
            raise _TransientFetchError(str(e)) from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DataLoaderError(f"Malformed JSON in {file_path}: {e}") from e

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout)
            self._owns_client = True
        return self._client


__all__ = [
    "DataLoaderError",
    "RESOURCES",
    "RawDataLoader",
    "ResourceSpec",
]
