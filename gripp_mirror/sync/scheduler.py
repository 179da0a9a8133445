"""
Periodic auto-sync.
"""

import asyncio
import contextlib
import logging
from typing import Optional, Sequence

from gripp_mirror.errors import MirrorError
from gripp_mirror.store import EntityType
from gripp_mirror.sync.orchestrator import SyncOrchestrator, SyncResult

logger = logging.getLogger(__name__)


class AutoSyncScheduler:
    """Runs ``sync_all`` every ``interval`` seconds on an asyncio task."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval: float,
        entities: Optional[Sequence[EntityType | str]] = None,
        incremental: bool = True,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.orchestrator = orchestrator
        self.interval = interval
        self.entities = list(entities) if entities else None
        self.incremental = incremental
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="auto-sync")
        logger.info(f"Auto-sync every {self.interval}s started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Auto-sync stopped")

    async def run_once(self) -> dict[EntityType, SyncResult | MirrorError]:
        outcomes = await self.orchestrator.sync_all(self.entities, incremental=self.incremental)
        self.runs += 1
        for entity, outcome in outcomes.items():
            if isinstance(outcome, MirrorError):
                logger.error(f"Auto-sync of {entity.value} failed: {outcome}")
        return outcomes

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Auto-sync run failed")
