"""
On-disk snapshot tier of the cache.

One JSON file per cache name:
``{"data": {key: {"value", "timestamp", "expiresIn"}}, "timestamp", "expiresIn"}``
with timestamps in epoch milliseconds and lifetimes in milliseconds.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from gripp_mirror.cache.memory import CacheEntry
from gripp_mirror.errors import CacheWriteError

logger = logging.getLogger(__name__)


class SnapshotFile:
    """Reads and atomically rewrites one cache snapshot file."""

    def __init__(self, directory: Path | str, name: str, default_ttl: float):
        self.path = Path(directory) / f"{name}.json"
        self.default_ttl = default_ttl

    def load(self) -> dict[str, CacheEntry]:
        """
        Read the snapshot.

        A missing or unreadable file yields an empty mapping.

        Returns:
            dict: Key mapped to entry (expired entries included)
        """
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache snapshot {self.path}: {e}")
            return {}

        entries: dict[str, CacheEntry] = {}
        for key, item in (payload.get("data") or {}).items():
            try:
                entries[key] = CacheEntry(
                    value=item["value"],
                    ttl=float(item.get("expiresIn", self.default_ttl * 1000)) / 1000,
                    written_at=float(item["timestamp"]) / 1000,
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed snapshot entry {key!r}")
        return entries

    def save(self, entries: dict[str, CacheEntry], now: float) -> None:
        """
        Rewrite the whole snapshot.

        Raises:
            CacheWriteError: If the file cannot be written
        """
        payload: dict[str, Any] = {
            "data": {
                key: {
                    "value": entry.value,
                    "timestamp": int(entry.written_at * 1000),
                    "expiresIn": int(entry.ttl * 1000),
                }
                for key, entry in entries.items()
            },
            "timestamp": int(now * 1000),
            "expiresIn": int(self.default_ttl * 1000),
        }

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.stem}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, default=str)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheWriteError(f"Could not write cache snapshot {self.path}: {e}") from e
