"""
Local Store access.

Fixed per-entity read and write operations over the SQLite mirror. Writes
are issued only by the sync orchestrator, inside ``transaction()``; every
other component uses the read operations.
"""

import logging
import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from gripp_mirror.config import Settings
from gripp_mirror.errors import ValidationError
from gripp_mirror.store import connection
from gripp_mirror.store.schema import (
    COLUMNS,
    TABLES,
    DateWindow,
    EntityType,
    TableSpec,
    create_schema,
)

logger = logging.getLogger(__name__)


def _spec(entity: EntityType | str) -> TableSpec:
    return TABLES[EntityType.parse(entity)]


def _iso(value: date) -> str:
    return value.isoformat()


class LocalStore:
    """SQLite-backed mirror of the upstream entities."""

    def __init__(self, db_path: Path | str):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalStore":
        return cls(settings.database_path)

    def init_schema(self) -> None:
        """Create missing tables."""
        with connection.get_connection(self.db_path) as conn:
            create_schema(conn)
        logger.info(f"Local store ready at {self.db_path}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction (see connection.transaction)."""
        with connection.transaction(self.db_path) as conn:
            yield conn

    # =========================================================================
    # Write operations (sync orchestrator only)
    # =========================================================================

    def delete_rows(
        self,
        conn: sqlite3.Connection,
        entity: EntityType | str,
        window: Optional[DateWindow] = None,
    ) -> int:
        """
        Delete the rows a sync is about to replace.

        Args:
            conn: Connection with an open transaction
            entity: Entity type
            window: Optional date window; only rows dated inside it are deleted

        Returns:
            int: Number of parent rows deleted
        """
        spec = _spec(entity)
        if window is not None:
            if spec.date_column is None:
                raise ValueError(f"{spec.entity.value} cannot be synced by date window")
            cursor = conn.execute(
                f"DELETE FROM {spec.table} WHERE {spec.date_column} BETWEEN ? AND ?",
                (_iso(window.start), _iso(window.end)),
            )
            return cursor.rowcount

        if spec.child_table:
            conn.execute(f"DELETE FROM {spec.child_table}")
        cursor = conn.execute(f"DELETE FROM {spec.table}")
        return cursor.rowcount

    def insert_record(
        self,
        conn: sqlite3.Connection,
        rows: Mapping[str, list[dict[str, Any]]],
    ) -> None:
        """
        Insert the rows of one record (a parent row and any children).

        Runs inside a savepoint, so a failure leaves none of the record's
        rows behind.

        Args:
            conn: Connection with an open transaction
            rows: Table name mapped to the rows to insert, parents first

        Raises:
            ValidationError: If any row is rejected by the database
        """
        try:
            with connection.savepoint(conn):
                for table, table_rows in rows.items():
                    columns = COLUMNS[table]
                    sql = (
                        f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) "
                        f"VALUES ({', '.join('?' for _ in columns)})"
                    )
                    for row in table_rows:
                        conn.execute(sql, tuple(row.get(column) for column in columns))
        except sqlite3.Error as e:
            first = next(iter(rows.values()), [])
            record_id = first[0].get("id") if first else None
            raise ValidationError(
                f"Insert failed: {e}",
                entity=next(iter(rows), None),
                record_id=record_id,
            ) from e

    def snapshot_fields(
        self,
        entity: EntityType | str,
        fields: list[str],
    ) -> dict[Any, dict[str, Any]]:
        """
        Capture the non-empty values of the given columns.

        Returns:
            dict: Row key mapped to {field: value} for fields that have a value
        """
        spec = _spec(entity)
        if not fields:
            return {}

        with connection.get_connection(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT {spec.key}, {', '.join(fields)} FROM {spec.table}"
            ).fetchall()

        snapshot: dict[Any, dict[str, Any]] = {}
        for row in rows:
            kept = {
                f: row[f] for f in fields
                if row[f] is not None and str(row[f]).strip() != ""
            }
            if kept:
                snapshot[row[spec.key]] = kept
        return snapshot

    def apply_protected(
        self,
        conn: sqlite3.Connection,
        entity: EntityType | str,
        snapshot: dict[Any, dict[str, Any]],
    ) -> int:
        """
        Re-apply snapshotted values where the fresh row has an empty value.

        Returns:
            int: Number of column values restored
        """
        spec = _spec(entity)
        restored = 0
        for key, values in snapshot.items():
            for field_name, value in values.items():
                cursor = conn.execute(
                    f"UPDATE {spec.table} SET {field_name} = ? "
                    f"WHERE {spec.key} = ? AND ({field_name} IS NULL OR TRIM({field_name}) = '')",
                    (value, key),
                )
                restored += cursor.rowcount
        return restored

    def update_sync_status(
        self,
        entity: EntityType | str,
        status: str,
        error: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> None:
        """
        Record the outcome of a sync.

        Args:
            entity: Entity type
            status: "success" or "error"
            error: Error message for failed syncs
            when: Timestamp of the sync (defaults to now, UTC)
        """
        name = EntityType.parse(entity).value
        stamp = (when or datetime.now(timezone.utc)).isoformat()
        last_success = stamp if status == "success" else None

        with connection.get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sync_status (entity, last_sync, last_success, status, error)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(entity) DO UPDATE SET
                    last_sync = excluded.last_sync,
                    last_success = COALESCE(excluded.last_success, sync_status.last_success),
                    status = excluded.status,
                    error = excluded.error
                """,
                (name, stamp, last_success, status, error),
            )

    # =========================================================================
    # Read operations
    # =========================================================================

    def _attach_lines(
        self, conn: sqlite3.Connection, spec: TableSpec, parents: list[dict]
    ) -> list[dict]:
        """Attach child rows to their parents under ``lines``."""
        if not parents:
            return parents
        lines = conn.execute(
            f"SELECT * FROM {spec.child_table} ORDER BY {spec.child_order}"
        ).fetchall()
        by_parent: dict[int, list[dict]] = {}
        for line in lines:
            by_parent.setdefault(line[spec.child_key], []).append(line)
        for parent in parents:
            parent["lines"] = by_parent.get(parent["id"], [])
        return parents

    def list_rows(self, entity: EntityType | str) -> list[dict[str, Any]]:
        """All rows of an entity type, ordered by key."""
        spec = _spec(entity)
        with connection.get_connection(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM {spec.table} ORDER BY {spec.key}"
            ).fetchall()
            if spec.child_table:
                rows = self._attach_lines(conn, spec, rows)
        return rows

    def get_row(self, entity: EntityType | str, key: Any) -> Optional[dict[str, Any]]:
        """One row by key, or None."""
        spec = _spec(entity)
        with connection.get_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT * FROM {spec.table} WHERE {spec.key} = ?", (key,)
            ).fetchone()
            if row is not None and spec.child_table:
                row["lines"] = conn.execute(
                    f"SELECT * FROM {spec.child_table} WHERE {spec.child_key} = ? "
                    f"ORDER BY {spec.child_order}",
                    (row["id"],),
                ).fetchall()
        return row

    def count_rows(self, entity: EntityType | str) -> int:
        spec = _spec(entity)
        with connection.get_connection(self.db_path) as conn:
            row = conn.execute(f"SELECT COUNT(*) AS n FROM {spec.table}").fetchone()
        return row["n"]

    def employee_ids(self) -> set[int]:
        with connection.get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT id FROM employees").fetchall()
        return {row["id"] for row in rows}

    def list_employees(self, active_only: bool = True) -> list[dict[str, Any]]:
        sql = "SELECT * FROM employees"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY firstname, lastname, id"
        with connection.get_connection(self.db_path) as conn:
            return conn.execute(sql).fetchall()

    def contracts_for_employee(
        self, employee_id: int, start: date, end: date
    ) -> list[dict[str, Any]]:
        """Contracts of an employee that overlap [start, end]."""
        with connection.get_connection(self.db_path) as conn:
            return conn.execute(
                """
                SELECT * FROM contracts
                WHERE employee_id = ?
                  AND (startdate IS NULL OR startdate <= ?)
                  AND (enddate IS NULL OR enddate >= ?)
                ORDER BY startdate, id
                """,
                (employee_id, _iso(end), _iso(start)),
            ).fetchall()

    def holidays_between(self, start: date, end: date) -> list[dict[str, Any]]:
        with connection.get_connection(self.db_path) as conn:
            return conn.execute(
                "SELECT * FROM holidays WHERE date BETWEEN ? AND ? ORDER BY date",
                (_iso(start), _iso(end)),
            ).fetchall()

    def absence_lines_for_employee(
        self, employee_id: int, start: date, end: date
    ) -> list[dict[str, Any]]:
        """Absence lines in [start, end] whose request belongs to the employee."""
        with connection.get_connection(self.db_path) as conn:
            return conn.execute(
                """
                SELECT l.*, r.employee_id, r.absencetype_name
                FROM absence_request_lines l
                JOIN absence_requests r ON r.id = l.absencerequest_id
                WHERE r.employee_id = ? AND l.date BETWEEN ? AND ?
                ORDER BY l.date, l.id
                """,
                (employee_id, _iso(start), _iso(end)),
            ).fetchall()

    def hours_total(self, employee_id: int, start: date, end: date) -> float:
        """Sum of time entry amounts in [start, end]."""
        with connection.get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total FROM hours
                WHERE employee_id = ? AND date BETWEEN ? AND ?
                """,
                (employee_id, _iso(start), _iso(end)),
            ).fetchone()
        return float(row["total"])

    def sync_status(
        self, entity: Optional[EntityType | str] = None
    ) -> dict[str, Any] | list[dict[str, Any]] | None:
        """
        Sync state for one entity type, or for all recorded ones.

        Returns:
            The row for ``entity`` (None if never synced), or a list of all rows
        """
        with connection.get_connection(self.db_path) as conn:
            if entity is None:
                return conn.execute("SELECT * FROM sync_status ORDER BY entity").fetchall()
            return conn.execute(
                "SELECT * FROM sync_status WHERE entity = ?",
                (EntityType.parse(entity).value,),
            ).fetchone()
