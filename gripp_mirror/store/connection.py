"""
SQLite connection handling for the Local Store.

Connections are short-lived: one per operation, opened in autocommit mode so
transactions are explicit. WAL journaling gives every reader a consistent
snapshot, so an open sync transaction is never visible half-way.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from gripp_mirror.errors import TransactionError

logger = logging.getLogger(__name__)


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Row factory that returns rows as dictionaries."""
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    """
    Apply connection settings.

    - WAL mode for snapshot reads during a write transaction
    - Foreign keys enforced
    - Dict rows
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = dict_factory


def connect(db_path: Path | str, timeout: float = 30.0) -> sqlite3.Connection:
    """
    Open a configured connection, creating the parent directory if needed.

    Args:
        db_path: Path to the SQLite database file
        timeout: Seconds to wait on a locked database

    Returns:
        Configured connection in autocommit mode
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=timeout, isolation_level=None)
    configure_connection(conn)
    return conn


@contextmanager
def get_connection(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    """Yield a connection that is closed on exit."""
    conn = connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside one write transaction.

    Commits when the block exits normally and rolls back when it raises.
    The write lock is taken up front (BEGIN IMMEDIATE) so two writers never
    interleave.

    Raises:
        TransactionError: If the transaction cannot be started or committed
    """
    with get_connection(db_path) as conn:
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise TransactionError(f"Could not begin transaction: {e}") from e

        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
            raise

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise TransactionError(f"Could not commit transaction: {e}") from e


@contextmanager
def savepoint(conn: sqlite3.Connection, name: str = "record") -> Iterator[None]:
    """Nested rollback scope inside an open transaction."""
    conn.execute(f"SAVEPOINT {name}")
    try:
        yield
    except BaseException:
        conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
        conn.execute(f"RELEASE SAVEPOINT {name}")
        raise
    conn.execute(f"RELEASE SAVEPOINT {name}")
