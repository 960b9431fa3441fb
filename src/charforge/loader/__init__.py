"""Raw data loading and caching."""

from .cache import CacheEntry, ResourceCache, ResourceCacheStats
from .loader import RESOURCES, DataLoaderError, RawDataLoader, ResourceSpec

__all__ = [
    "CacheEntry",
    "DataLoaderError",
    "RESOURCES",
    "RawDataLoader",
    "ResourceCache",
    "ResourceCacheStats",
    "ResourceSpec",
]
