"""
Sync orchestrator.

Pulls an entity collection from the upstream and replaces the local table
with it in one transaction. Row-level problems are collected and reported;
anything else aborts the sync and leaves the previous data in place.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from gripp_mirror.cache import TieredCache, keys
from gripp_mirror.config import Settings
from gripp_mirror.errors import MirrorError, SyncFailed, SyncInProgressError, ValidationError
from gripp_mirror.store import DateWindow, EntityType, LocalStore
from gripp_mirror.sync.entities import SYNC_ORDER, EntityDefinition, entity_definition
from gripp_mirror.sync.policies import protected_fields_for
from gripp_mirror.upstream import Filter, GrippRecord, UpstreamClient, parse_record

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a committed sync."""

    entity: EntityType
    saved: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    restored: int = 0
    failed_pages: list[int] = field(default_factory=list)
    window: Optional[DateWindow] = None
    duration: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.value,
            "saved": self.saved,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "error_count": len(self.errors),
            "restored": self.restored,
            "failed_pages": list(self.failed_pages),
            "window": (
                {"start": self.window.start.isoformat(), "end": self.window.end.isoformat()}
                if self.window else None
            ),
            "duration": round(self.duration, 3),
        }


class SyncOrchestrator:
    """
    Runs syncs, at most one per entity type at a time.
    """

    def __init__(
        self,
        client: UpstreamClient,
        store: LocalStore,
        settings: Settings,
        caches: Optional[Sequence[TieredCache]] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Upstream client
            store: Local store (written only from here)
            settings: Application settings
            caches: Caches to invalidate after a committed sync
            today: Source of the current date (injectable for tests)
        """
        self.client = client
        self.store = store
        self.settings = settings
        self.caches = list(caches or [])
        self._today = today
        self._locks: dict[EntityType, asyncio.Lock] = {e: asyncio.Lock() for e in EntityType}

    def is_running(self, entity: EntityType | str) -> bool:
        return self._locks[EntityType.parse(entity)].locked()

    async def sync_entity(
        self,
        entity: EntityType | str,
        *,
        incremental: bool = False,
        window: Optional[DateWindow] = None,
        wait: bool = True,
        deadline: Optional[float] = None,
    ) -> SyncResult:
        """
        Sync one entity type.

        Args:
            entity: Entity type to sync
            incremental: Re-fetch only the lookback window since the last
                successful sync (falls back to a full sync where unsupported)
            window: Explicit date window to replace
            wait: Wait for a running sync of the same type instead of failing
            deadline: Per-attempt deadline for each page fetch in seconds
                (defaults to the configured upstream_deadline)

        Returns:
            SyncResult: Counts and collected row-level errors

        Raises:
            SyncInProgressError: Another sync of this type runs and wait is False
            SyncFailed: Nothing could be saved, or pages were missing and
                complete pages are required
            NetworkError, UpstreamError: The fetch failed
            TransactionError: The store could not commit
        """
        entity = EntityType.parse(entity)
        definition = entity_definition(entity)
        if window is not None and not definition.supports_window:
            raise ValueError(f"{entity.value} cannot be synced by date window")

        lock = self._locks[entity]
        if not wait and lock.locked():
            raise SyncInProgressError(f"A sync of {entity.value} is already running")

        async with lock:
            if window is None and incremental:
                window = await asyncio.to_thread(self._incremental_window, definition)
            if deadline is None:
                deadline = self.settings.upstream_deadline
            return await self._run(definition, window, deadline)

    async def _run(
        self,
        definition: EntityDefinition,
        window: Optional[DateWindow],
        deadline: Optional[float],
    ) -> SyncResult:
        entity = definition.entity
        scope = f"{window.start}..{window.end}" if window else "full"
        logger.info(f"Syncing {entity.value} ({scope})")
        started = time.monotonic()

        try:
            result = await self._sync(definition, window, deadline)
        except Exception as e:
            await asyncio.to_thread(self.store.update_sync_status, entity, "error", str(e))
            logger.error(f"Sync of {entity.value} failed: {e}")
            raise

        result.duration = time.monotonic() - started
        await asyncio.to_thread(self.store.update_sync_status, entity, "success")
        self._invalidate(entity)
        logger.info(
            f"Synced {entity.value}: {result.saved} saved, {result.skipped} skipped, "
            f"{len(result.errors)} error(s) in {result.duration:.2f}s"
        )
        return result

    async def _sync(
        self,
        definition: EntityDefinition,
        window: Optional[DateWindow],
        deadline: Optional[float],
    ) -> SyncResult:
        entity = definition.entity
        policy = protected_fields_for(entity)
        snapshot = await asyncio.to_thread(policy.snapshot, self.store)

        filters = []
        if window is not None:
            filters.append(
                Filter.between(definition.date_field, window.start.isoformat(), window.end.isoformat())
            )
        pages = await self.client.fetch_all(definition.method, filters, deadline=deadline)
        page_errors = [f"Page at offset {offset} failed" for offset in pages.failed_pages]
        if page_errors and self.settings.sync_require_complete_pages:
            raise SyncFailed(
                f"{len(pages.failed_pages)} page(s) of {entity.value} could not be fetched",
                errors=page_errors,
            )

        result = SyncResult(entity=entity, window=window)
        if page_errors:
            # Rows on the failed pages are missing from this replace
            logger.warning(
                f"Saving {len(pages.rows)} fetched {entity.value} rows without "
                f"{len(page_errors)} failed page(s)"
            )
            result.failed_pages = list(pages.failed_pages)
            result.errors.extend(page_errors)
        records = await asyncio.to_thread(self._validate, definition, pages.rows, result)

        def write() -> None:
            with self.store.transaction() as conn:
                self.store.delete_rows(conn, entity, window)
                for record in records:
                    try:
                        self.store.insert_record(conn, record.to_rows())
                    except ValidationError as e:
                        logger.warning(f"Could not insert {entity.value} {record.record_key}: {e}")
                        result.errors.append(str(e))
                        continue
                    result.saved += 1

                if result.saved == 0:
                    raise SyncFailed(
                        f"No {entity.value} records could be saved; previous data kept",
                        errors=result.errors or ["Upstream returned no records"],
                    )
                result.restored = policy.reapply(self.store, conn, snapshot)

        await asyncio.to_thread(write)
        return result

    def _validate(
        self, definition: EntityDefinition, rows: list[dict], result: SyncResult
    ) -> list[GrippRecord]:
        """Parse rows, dropping invalid records and orphans."""
        entity = definition.entity
        employee_ids = self.store.employee_ids() if definition.employee_scoped else None

        records: list[GrippRecord] = []
        for raw in rows:
            try:
                record = parse_record(definition.model, raw, entity.value)
            except ValidationError as e:
                logger.warning(f"Skipping record: {e}")
                result.skipped += 1
                result.errors.append(str(e))
                continue

            if employee_ids is not None and record.employee_id not in employee_ids:
                logger.warning(
                    f"Skipping orphan {entity.value} {record.record_key}: "
                    f"employee {record.employee_id} is not mirrored"
                )
                result.skipped += 1
                continue

            records.append(record)
        return records

    def _incremental_window(self, definition: EntityDefinition) -> Optional[DateWindow]:
        entity = definition.entity
        if not definition.supports_window:
            logger.info(f"{entity.value} has no date field, running a full sync")
            return None

        status = self.store.sync_status(entity)
        if not status or not status.get("last_success"):
            logger.info(f"{entity.value} was never synced successfully, running a full sync")
            return None

        last = datetime.fromisoformat(status["last_success"]).date()
        start = last - timedelta(days=self.settings.incremental_lookback_days)
        end = max(self._today(), start)
        return DateWindow(start, end)

    def _invalidate(self, entity: EntityType) -> None:
        prefixes = keys.invalidation_prefixes(entity)
        for cache in self.caches:
            removed = cache.clear_many(prefixes)
            logger.debug(f"Invalidated {removed} '{cache.name}' entries after {entity.value} sync")

    async def sync_all(
        self,
        entities: Optional[Sequence[EntityType | str]] = None,
        incremental: bool = False,
    ) -> dict[EntityType, SyncResult | MirrorError]:
        """
        Sync several entity types in dependency order.

        A failing type does not stop the others.

        Args:
            entities: Entity types to sync (default: all)
            incremental: Passed to every sync_entity call

        Returns:
            dict: Entity type mapped to its SyncResult or the error it raised
        """
        wanted = {EntityType.parse(e) for e in entities} if entities else set(SYNC_ORDER)
        outcomes: dict[EntityType, SyncResult | MirrorError] = {}

        for entity in SYNC_ORDER:
            if entity not in wanted:
                continue
            try:
                outcomes[entity] = await self.sync_entity(entity, incremental=incremental)
            except MirrorError as e:
                outcomes[entity] = e

        failed = [e.value for e, outcome in outcomes.items() if isinstance(outcome, MirrorError)]
        if failed:
            logger.warning(f"Sync finished with failures: {', '.join(failed)}")
        return outcomes
