"""
In-process TTL cache.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its lifetime."""

    value: Any
    ttl: float
    written_at: float

    def expires_at(self) -> float:
        return self.written_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    expired: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "expired": self.expired,
        }


@dataclass
class TTLCache:
    """Dict of CacheEntry objects; expiry is checked on read."""

    default_ttl: float
    clock: Callable[[], float] = time.time
    _entries: dict[str, CacheEntry] = field(default_factory=dict)
    stats: CacheStats = field(default_factory=CacheStats)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            self.stats.expired += 1
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return entry

    def get(self, key: str) -> Any:
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> CacheEntry:
        entry = CacheEntry(
            value=value,
            ttl=self.default_ttl if ttl is None else ttl,
            written_at=self.clock(),
        )
        self._entries[key] = entry
        self.stats.sets += 1
        return entry

    def put_entry(self, key: str, entry: CacheEntry) -> None:
        """Insert an entry as-is (used when rehydrating from a snapshot)."""
        self._entries[key] = entry

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def purge_expired(self) -> int:
        now = self.clock()
        doomed = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def items(self) -> list[tuple[str, CacheEntry]]:
        return list(self._entries.items())

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
