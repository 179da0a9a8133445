"""
Tiered cache: in-process TTL tier with an optional snapshot file behind it.

Derived-metrics keys fall back to their family's global key when the exact
key is missing; such hits are flagged stale. Snapshot failures are logged
and never reach the caller.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gripp_mirror.cache import keys
from gripp_mirror.cache.memory import TTLCache
from gripp_mirror.cache.persistence import SnapshotFile
from gripp_mirror.errors import CacheWriteError

logger = logging.getLogger(__name__)


@dataclass
class CacheLookup:
    """A cache hit."""

    key: str
    value: Any
    stale: bool = False
    source_key: Optional[str] = None


class TieredCache:
    """
    Named cache instance with an explicit init/shutdown lifecycle.

    Created once per purpose (data cache, response cache) and passed to the
    components that use it.
    """

    def __init__(
        self,
        name: str,
        default_ttl: float,
        snapshot: Optional[SnapshotFile] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            name: Cache name, used in logs and for the snapshot file
            default_ttl: Lifetime in seconds for entries set without a ttl
            snapshot: Optional persistence tier
            clock: Wall-clock source (injectable for tests)
        """
        self.name = name
        self.default_ttl = default_ttl
        self.snapshot = snapshot
        self.clock = clock
        self.memory = TTLCache(default_ttl=default_ttl, clock=clock)
        self.snapshot_failures = 0
        self._initialized = False

    def init(self) -> int:
        """
        Rehydrate unexpired entries from the snapshot.

        Returns:
            int: Number of entries loaded
        """
        loaded = 0
        if self.snapshot is not None:
            now = self.clock()
            for key, entry in self.snapshot.load().items():
                if not entry.is_expired(now):
                    self.memory.put_entry(key, entry)
                    loaded += 1
        self._initialized = True
        logger.info(f"Cache '{self.name}' initialised with {loaded} entries")
        return loaded

    def shutdown(self) -> None:
        """Flush the snapshot and stop."""
        self.memory.purge_expired()
        self._persist()
        self._initialized = False
        logger.info(f"Cache '{self.name}' shut down")

    def _persist(self) -> None:
        if self.snapshot is None:
            return
        try:
            self.snapshot.save(dict(self.memory.items()), self.clock())
        except CacheWriteError as e:
            self.snapshot_failures += 1
            logger.warning(f"Cache '{self.name}': {e}")

    def get(self, key: str) -> Optional[CacheLookup]:
        """
        Look up a key.

        Args:
            key: Cache key

        Returns:
            CacheLookup on a hit (stale=True when served from the global
            fallback key), None on a miss
        """
        entry = self.memory.get_entry(key)
        if entry is not None:
            return CacheLookup(key=key, value=entry.value, source_key=key)

        fallback = keys.global_key_for(key)
        if fallback is None:
            return None

        entry = self.memory.get_entry(fallback)
        if entry is None:
            return None

        logger.warning(f"Cache '{self.name}': serving {key} from stale {fallback}")
        return CacheLookup(key=key, value=entry.value, stale=True, source_key=fallback)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value; derived-metrics keys also refresh their global key.
        """
        self.memory.set(key, value, ttl)
        fallback = keys.global_key_for(key)
        if fallback is not None:
            self.memory.set(fallback, value, ttl)
        self._persist()

    def clear(self, key_or_prefix: str) -> int:
        """
        Remove one key, or every key starting with the given prefix.

        An existing key is removed on its own; only an argument that is not
        a key is treated as a prefix.

        Returns:
            int: Number of entries removed
        """
        if self.memory.delete(key_or_prefix):
            removed = 1
        else:
            removed = self.memory.delete_prefix(key_or_prefix)
        if removed:
            self._persist()
        logger.debug(f"Cache '{self.name}': cleared {removed} entries for {key_or_prefix!r}")
        return removed

    def clear_many(self, prefixes: tuple[str, ...] | list[str]) -> int:
        removed = sum(self.memory.delete_prefix(prefix) for prefix in prefixes)
        if removed:
            self._persist()
        return removed

    def clear_all(self) -> int:
        removed = self.memory.clear()
        self._persist()
        logger.info(f"Cache '{self.name}': cleared all {removed} entries")
        return removed

    def status(self) -> dict[str, Any]:
        """Summary of the cache for the status endpoint."""
        now = self.clock()
        entries = []
        for key, entry in sorted(self.memory.items()):
            entries.append({
                "key": key,
                "age": round(now - entry.written_at, 1),
                "expires_in": round(entry.expires_at() - now, 1),
                "expired": entry.is_expired(now),
            })
        return {
            "name": self.name,
            "initialized": self._initialized,
            "persistent": self.snapshot is not None,
            "default_ttl": self.default_ttl,
            "size": len(self.memory),
            "stats": self.memory.stats.as_dict(),
            "snapshot_failures": self.snapshot_failures,
            "entries": entries,
        }
