"""
Protected fields: locally curated columns that survive a full resync.

A snapshot of the non-empty local values is taken before the table is
replaced and written back over the fresh rows wherever the upstream value
came back empty. A non-empty upstream value always wins.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from gripp_mirror.store import LocalStore
from gripp_mirror.store.schema import EntityType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProtectedFields:
    """Protected columns of one entity type."""

    entity: EntityType
    fields: tuple[str, ...] = ()

    def snapshot(self, store: LocalStore) -> dict[Any, dict[str, Any]]:
        if not self.fields:
            return {}
        snapshot = store.snapshot_fields(self.entity, list(self.fields))
        logger.debug(f"Snapshotted {len(snapshot)} {self.entity.value} rows with protected values")
        return snapshot

    def reapply(
        self,
        store: LocalStore,
        conn: sqlite3.Connection,
        snapshot: dict[Any, dict[str, Any]],
    ) -> int:
        if not snapshot:
            return 0
        restored = store.apply_protected(conn, self.entity, snapshot)
        if restored:
            logger.info(f"Restored {restored} protected {self.entity.value} value(s)")
        return restored


PROTECTED_FIELDS: dict[EntityType, ProtectedFields] = {
    EntityType.EMPLOYEES: ProtectedFields(EntityType.EMPLOYEES, ("function",)),
}


def protected_fields_for(entity: EntityType | str) -> ProtectedFields:
    """Policy for an entity type (empty when nothing is protected)."""
    entity = EntityType.parse(entity)
    return PROTECTED_FIELDS.get(entity, ProtectedFields(entity))
