from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Result
from sqlalchemy.exc import DatabaseError, OperationalError

from ..core.exceptions import StorageCorruptionError, StorageError, StorageFullError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

_FULL_MARKERS = ("database or disk is full", "disk full", "is full", "no space left")
_CORRUPT_MARKERS = ("malformed", "not a database", "disk i/o error")


def translate_storage_error(exc: Exception) -> Optional[StorageError]:
    """Map driver errors to the storage error taxonomy.

    Returns None for errors that are not storage-level (constraint
    violations, programming errors) so callers re-raise them unchanged.
    """

    if not isinstance(exc, (OperationalError, DatabaseError)):
        return None
    message = str(getattr(exc, "orig", None) or exc).lower()
    if any(marker in message for marker in _FULL_MARKERS):
        return StorageFullError(f"Local storage is full: {message}")
    if any(marker in message for marker in _CORRUPT_MARKERS):
        return StorageCorruptionError(f"Local database is corrupted: {message}")
    return None


@contextmanager
def db_transaction(conn_factory: DatabaseConnection, conn: Optional[Connection] = None) -> Iterator[Connection]:
    """Scoped transaction: commit on success, rollback on every error path.

    When ``conn`` is given the caller already owns a transaction and this
    simply joins it (no commit, no close).
    """

    if conn is not None:
        yield conn
        return

    connection = conn_factory.connect()
    try:
        trans = connection.begin()
        try:
            yield connection
            trans.commit()
        except Exception as exc:
            trans.rollback()
            storage_error = translate_storage_error(exc)
            if storage_error is not None:
                logger.error("Storage failure, transaction rolled back: %s", storage_error)
                raise storage_error from exc
            raise
    finally:
        connection.close()


def execute(conn: Connection, sql: str, params: Optional[Dict[str, Any]] = None) -> Result:
    return conn.execute(text(sql), params or {})


def fetchone(result: Result) -> Optional[Dict[str, Any]]:
    row = result.mappings().first()
    return dict(row) if row else None


def fetchall(result: Result) -> List[Dict[str, Any]]:
    return [dict(r) for r in result.mappings().all()]
