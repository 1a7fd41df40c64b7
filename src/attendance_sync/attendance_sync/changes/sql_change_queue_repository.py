from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

from ..core.enums import OperationType
from ..database.base import db_transaction, execute, fetchall, fetchone
from ..database.connection import DatabaseConnection
from .model import ChangeQueueEntry, NewChange
from .repository import ChangeQueueRepository

_COLUMNS = "seq, table_name, entity_id, operation, payload, created_at, attempts, poisoned, last_error"


def _to_entry(r: Dict[str, Any]) -> ChangeQueueEntry:
    return ChangeQueueEntry(
        seq=int(r["seq"]),
        table_name=r["table_name"],
        entity_id=r["entity_id"],
        operation=OperationType(r["operation"]),
        payload=json.loads(r["payload"]) if r.get("payload") else {},
        created_at=r["created_at"],
        attempts=int(r.get("attempts") or 0),
        poisoned=bool(r.get("poisoned")),
        last_error=r.get("last_error"),
    )


class SQLChangeQueueRepository(ChangeQueueRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(self, change: NewChange, *, conn=None) -> int:
        with db_transaction(self._conn_factory, conn) as c:
            result = execute(
                c,
                """
                INSERT INTO change_queue(table_name, entity_id, operation, payload, created_at)
                VALUES(:table_name, :entity_id, :operation, :payload, :created_at)
                """,
                {
                    "table_name": change.table_name,
                    "entity_id": change.entity_id,
                    "operation": change.operation.value,
                    "payload": json.dumps(change.payload, ensure_ascii=False, sort_keys=True),
                    "created_at": change.created_at,
                },
            )
            return int(result.lastrowid)

    def get(self, seq: int, *, conn=None) -> Optional[ChangeQueueEntry]:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(execute(c, f"SELECT {_COLUMNS} FROM change_queue WHERE seq=:seq", {"seq": int(seq)}))
            return _to_entry(r) if r else None

    def list_for_table(self, table_name: str, *, include_poisoned: bool = True, conn=None) -> Sequence[ChangeQueueEntry]:
        where = "table_name=:table_name"
        if not include_poisoned:
            where += " AND poisoned=0"
        with db_transaction(self._conn_factory, conn) as c:
            rows = fetchall(
                execute(
                    c,
                    f"SELECT {_COLUMNS} FROM change_queue WHERE {where} ORDER BY seq ASC",
                    {"table_name": table_name},
                )
            )
            return [_to_entry(r) for r in rows]

    def list_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> Sequence[ChangeQueueEntry]:
        with db_transaction(self._conn_factory, conn) as c:
            rows = fetchall(
                execute(
                    c,
                    f"""
                    SELECT {_COLUMNS} FROM change_queue
                    WHERE table_name=:table_name AND entity_id=:entity_id
                    ORDER BY seq ASC
                    """,
                    {"table_name": table_name, "entity_id": entity_id},
                )
            )
            return [_to_entry(r) for r in rows]

    def count(self, table_name: str, *, conn=None) -> int:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(
                execute(c, "SELECT COUNT(*) AS n FROM change_queue WHERE table_name=:table_name", {"table_name": table_name})
            )
            return int(r["n"]) if r else 0

    def delete(self, seq: int, *, conn=None) -> bool:
        with db_transaction(self._conn_factory, conn) as c:
            return execute(c, "DELETE FROM change_queue WHERE seq=:seq", {"seq": int(seq)}).rowcount > 0

    def delete_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> int:
        with db_transaction(self._conn_factory, conn) as c:
            return execute(
                c,
                "DELETE FROM change_queue WHERE table_name=:table_name AND entity_id=:entity_id",
                {"table_name": table_name, "entity_id": entity_id},
            ).rowcount

    def record_failure(self, seq: int, *, max_attempts: int, error: Optional[str] = None, conn=None) -> Optional[ChangeQueueEntry]:
        with db_transaction(self._conn_factory, conn) as c:
            execute(
                c,
                """
                UPDATE change_queue
                SET attempts = attempts + 1,
                    poisoned = CASE WHEN attempts + 1 >= :max_attempts THEN 1 ELSE poisoned END,
                    last_error = :error
                WHERE seq=:seq
                """,
                {"seq": int(seq), "max_attempts": int(max_attempts), "error": error},
            )
            return self.get(seq, conn=c)

    def reset(self, seq: int, *, conn=None) -> bool:
        with db_transaction(self._conn_factory, conn) as c:
            return (
                execute(
                    c,
                    "UPDATE change_queue SET attempts=0, poisoned=0, last_error=NULL WHERE seq=:seq AND poisoned=1",
                    {"seq": int(seq)},
                ).rowcount
                > 0
            )
