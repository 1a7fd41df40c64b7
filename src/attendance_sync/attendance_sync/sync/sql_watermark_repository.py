from __future__ import annotations

from typing import Optional

from ..database.base import db_transaction, execute, fetchone
from ..database.connection import DatabaseConnection
from .repository import WatermarkRepository


class SQLWatermarkRepository(WatermarkRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, entity_type: str, *, conn=None) -> Optional[str]:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(
                execute(c, "SELECT last_pulled_at FROM sync_watermarks WHERE entity_type=:et", {"et": entity_type})
            )
            return r["last_pulled_at"] if r else None

    def set(self, entity_type: str, value: str, *, conn=None) -> None:
        with db_transaction(self._conn_factory, conn) as c:
            execute(
                c,
                """
                INSERT INTO sync_watermarks(entity_type, last_pulled_at)
                VALUES(:et, :value)
                ON CONFLICT(entity_type) DO UPDATE SET last_pulled_at=excluded.last_pulled_at
                """,
                {"et": entity_type, "value": value},
            )
