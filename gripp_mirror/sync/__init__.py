"""Sync orchestration: upstream collections into the Local Store."""

from gripp_mirror.sync.entities import (
    ENTITY_DEFINITIONS,
    SYNC_ORDER,
    EntityDefinition,
    entity_definition,
)
from gripp_mirror.sync.orchestrator import SyncOrchestrator, SyncResult
from gripp_mirror.sync.policies import PROTECTED_FIELDS, ProtectedFields, protected_fields_for
from gripp_mirror.sync.scheduler import AutoSyncScheduler

__all__ = [
    "SyncOrchestrator",
    "SyncResult",
    "AutoSyncScheduler",
    "EntityDefinition",
    "ENTITY_DEFINITIONS",
    "SYNC_ORDER",
    "entity_definition",
    "ProtectedFields",
    "PROTECTED_FIELDS",
    "protected_fields_for",
]
