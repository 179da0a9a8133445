"""
Service wiring.

Builds every component from one Settings instance and owns their
start/close lifecycle. Nothing is held in module-level state.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from gripp_mirror.api import ReadService
from gripp_mirror.cache import SnapshotFile, TieredCache
from gripp_mirror.config import Settings
from gripp_mirror.hours import HoursEngine
from gripp_mirror.store import LocalStore
from gripp_mirror.sync import AutoSyncScheduler, SyncOrchestrator
from gripp_mirror.upstream import UpstreamClient

logger = logging.getLogger(__name__)


@dataclass
class MirrorServices:
    settings: Settings
    client: UpstreamClient
    store: LocalStore
    data_cache: TieredCache
    response_cache: TieredCache
    orchestrator: SyncOrchestrator
    engine: HoursEngine
    read_service: ReadService
    scheduler: Optional[AutoSyncScheduler] = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "MirrorServices":
        """
        Construct all components.

        Args:
            settings: Application settings
            http_client: Optional httpx client for the upstream (tests)
        """
        client = UpstreamClient(settings, http_client=http_client)
        store = LocalStore.from_settings(settings)

        snapshot = (
            SnapshotFile(settings.cache_dir, "data", settings.cache_default_ttl)
            if settings.cache_persist else None
        )
        data_cache = TieredCache("data", settings.cache_default_ttl, snapshot=snapshot)
        response_cache = TieredCache("response", settings.response_cache_ttl)

        orchestrator = SyncOrchestrator(
            client, store, settings, caches=[data_cache, response_cache]
        )
        engine = HoursEngine(store, settings)
        read_service = ReadService(store, engine, orchestrator, data_cache, response_cache)

        scheduler = None
        if settings.auto_sync_enabled:
            scheduler = AutoSyncScheduler(
                orchestrator,
                settings.auto_sync_interval,
                entities=settings.auto_sync_entities or None,
            )

        return cls(
            settings=settings,
            client=client,
            store=store,
            data_cache=data_cache,
            response_cache=response_cache,
            orchestrator=orchestrator,
            engine=engine,
            read_service=read_service,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        """Create the schema, rehydrate caches and start the auto-sync timer."""
        await asyncio.to_thread(self.store.init_schema)
        self.data_cache.init()
        self.response_cache.init()
        if self.scheduler is not None:
            self.scheduler.start()
        logger.info("Mirror services started")

    async def close(self) -> None:
        """Stop the timer, close the HTTP client and flush the caches."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.client.close()
        self.data_cache.shutdown()
        self.response_cache.shutdown()
        logger.info("Mirror services closed")
