"""Tiered key/value cache in front of store and hours reads."""

from gripp_mirror.cache import keys
from gripp_mirror.cache.memory import CacheEntry, CacheStats, TTLCache
from gripp_mirror.cache.persistence import SnapshotFile
from gripp_mirror.cache.tiered import CacheLookup, TieredCache

__all__ = [
    "keys",
    "CacheEntry",
    "CacheStats",
    "TTLCache",
    "SnapshotFile",
    "CacheLookup",
    "TieredCache",
]
