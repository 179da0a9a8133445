"""SQLite mirror of the upstream entities."""

from gripp_mirror.store.repository import LocalStore
from gripp_mirror.store.schema import COLUMNS, TABLES, DateWindow, EntityType, TableSpec

__all__ = [
    "LocalStore",
    "EntityType",
    "DateWindow",
    "TableSpec",
    "TABLES",
    "COLUMNS",
]
