"""
Read API service.

The facade the HTTP layer talks to: cached entity reads, cached hours
overviews, sync triggers and cache management. Reads never touch the
upstream; an entity that was never synced reads as empty.
"""

import asyncio
import logging
import sqlite3
from typing import Any, Optional, Sequence

from gripp_mirror.cache import TieredCache, keys
from gripp_mirror.errors import MirrorError
from gripp_mirror.hours import HoursEngine, Period
from gripp_mirror.store import DateWindow, EntityType, LocalStore
from gripp_mirror.sync import SyncOrchestrator, SyncResult

logger = logging.getLogger(__name__)


class ReadService:
    """Core operations behind the HTTP routes."""

    def __init__(
        self,
        store: LocalStore,
        engine: HoursEngine,
        orchestrator: SyncOrchestrator,
        data_cache: TieredCache,
        response_cache: Optional[TieredCache] = None,
    ):
        self.store = store
        self.engine = engine
        self.orchestrator = orchestrator
        self.data_cache = data_cache
        self.response_cache = response_cache

    @property
    def caches(self) -> list[TieredCache]:
        return [c for c in (self.data_cache, self.response_cache) if c is not None]

    # =========================================================================
    # Entity reads
    # =========================================================================

    async def list_entities(
        self, entity: EntityType | str, bypass_cache: bool = False
    ) -> list[dict[str, Any]]:
        """
        All mirrored rows of an entity type.

        Args:
            entity: Entity type
            bypass_cache: Read from the store even if a cached copy exists

        Returns:
            list: Rows (empty if the entity was never synced)
        """
        entity = EntityType.parse(entity)
        key = keys.entity_list(entity)
        if not bypass_cache:
            hit = self.data_cache.get(key)
            if hit is not None:
                return hit.value

        rows = await asyncio.to_thread(self.store.list_rows, entity)
        if rows:
            self.data_cache.set(key, rows)
        return rows

    async def get_entity(self, entity: EntityType | str, key: Any) -> Optional[dict[str, Any]]:
        """
        One mirrored row, or None.

        Holidays are keyed by ISO date, everything else by integer id.
        """
        entity = EntityType.parse(entity)
        if entity != EntityType.HOLIDAYS:
            try:
                key = int(key)
            except (TypeError, ValueError):
                raise ValueError(f"Invalid {entity.value} id: {key!r}") from None

        cache_key = keys.entity_item(entity, key)
        hit = self.data_cache.get(cache_key)
        if hit is not None:
            return hit.value

        row = await asyncio.to_thread(self.store.get_row, entity, key)
        if row is not None:
            self.data_cache.set(cache_key, row)
        return row

    # =========================================================================
    # Hours
    # =========================================================================

    async def employee_hours(self, period: Period, bypass_cache: bool = False) -> dict[str, Any]:
        """
        Hours overview of all active employees for a period.

        A cached overview for the exact period is returned as-is. When only
        the family's global entry is available, a fresh overview is computed;
        the stale entry is served only if that computation fails.

        Returns:
            dict: {"data": overview, "meta": {"cached", "stale", "source_key"}}
        """
        key = period.cache_key
        hit = None if bypass_cache else self.data_cache.get(key)
        if hit is not None and not hit.stale:
            return {"data": hit.value, "meta": {"cached": True, "stale": False, "source_key": key}}

        try:
            overview = await asyncio.to_thread(self.engine.compute_overview, period)
        except (sqlite3.Error, MirrorError) as e:
            if hit is None:
                raise
            logger.warning(f"Serving stale {hit.source_key} for {key}: {e}")
            return {
                "data": hit.value,
                "meta": {"cached": True, "stale": True, "source_key": hit.source_key},
            }

        self.data_cache.set(key, overview)
        return {"data": overview, "meta": {"cached": False, "stale": False, "source_key": key}}

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync(
        self,
        entity: EntityType | str,
        incremental: bool = False,
        force: bool = False,
        window: Optional[DateWindow] = None,
    ) -> SyncResult:
        """
        Sync one entity type.

        Args:
            entity: Entity type
            incremental: Only re-fetch the window since the last successful sync
            force: Drop cached entries of the entity before syncing
            window: Explicit date window

        Raises:
            SyncInProgressError: A sync of the entity type is already running
        """
        entity = EntityType.parse(entity)
        if force:
            self.clear_cache_for(entity)
        return await self.orchestrator.sync_entity(
            entity, incremental=incremental, window=window, wait=False
        )

    async def sync_all(
        self,
        incremental: bool = False,
        force: bool = False,
        entities: Optional[Sequence[EntityType | str]] = None,
    ) -> dict[str, Any]:
        """
        Sync every (or the given) entity type.

        Returns:
            dict: Entity name mapped to a result dict or an error dict
        """
        if force:
            self.clear_cache()
        outcomes = await self.orchestrator.sync_all(entities, incremental=incremental)
        return {
            entity.value: (
                {"success": False, "error": describe_error(outcome)}
                if isinstance(outcome, MirrorError)
                else {"success": True, **outcome.as_dict()}
            )
            for entity, outcome in outcomes.items()
        }

    async def sync_status(self) -> list[dict[str, Any]]:
        """Sync state of every entity type (never-synced types included)."""
        rows = await asyncio.to_thread(self.store.sync_status)
        by_entity = {row["entity"]: row for row in rows}
        return [
            {
                "entity": entity.value,
                "last_sync": by_entity.get(entity.value, {}).get("last_sync"),
                "last_success": by_entity.get(entity.value, {}).get("last_success"),
                "status": by_entity.get(entity.value, {}).get("status", "never"),
                "error": by_entity.get(entity.value, {}).get("error"),
                "running": self.orchestrator.is_running(entity),
            }
            for entity in EntityType
        ]

    # =========================================================================
    # Cache management
    # =========================================================================

    def cache_status(self) -> dict[str, Any]:
        return {cache.name: cache.status() for cache in self.caches}

    def clear_cache(self) -> int:
        return sum(cache.clear_all() for cache in self.caches)

    def clear_cache_for(self, entity: EntityType | str) -> int:
        prefixes = keys.invalidation_prefixes(entity)
        return sum(cache.clear_many(prefixes) for cache in self.caches)


def describe_error(error: BaseException) -> dict[str, Any]:
    """JSON-friendly description of an error."""
    errors = getattr(error, "errors", None) or []
    return {
        "message": str(error),
        "type": type(error).__name__,
        "error_count": len(errors) if errors else 1,
        "errors": list(errors)[:50],
    }
