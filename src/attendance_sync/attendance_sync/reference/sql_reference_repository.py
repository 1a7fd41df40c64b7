from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.constants import ENTITY_LEVELS, ENTITY_OFFICES, ENTITY_STUDENTS
from ..database.base import db_transaction, execute, fetchall, fetchone
from ..database.connection import DatabaseConnection
from .model import Level, Office, Student
from .repository import ReferenceRepository

_TABLES = {
    ENTITY_OFFICES: "offices",
    ENTITY_LEVELS: "levels",
    ENTITY_STUDENTS: "students",
}


class SQLReferenceRepository(ReferenceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_local_offices(self) -> Sequence[Office]:
        with db_transaction(self._conn_factory) as conn:
            rows = fetchall(execute(conn, "SELECT uuid, name, updated_at FROM offices ORDER BY name ASC"))
            return [Office(uuid=r["uuid"], name=r["name"], updated_at=r.get("updated_at")) for r in rows]

    def get_local_levels(self) -> Sequence[Level]:
        with db_transaction(self._conn_factory) as conn:
            rows = fetchall(execute(conn, "SELECT uuid, name, updated_at FROM levels ORDER BY name ASC"))
            return [Level(uuid=r["uuid"], name=r["name"], updated_at=r.get("updated_at")) for r in rows]

    def get_office(self, office_uuid: str, *, conn=None) -> Optional[Office]:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(execute(c, "SELECT uuid, name, updated_at FROM offices WHERE uuid=:uuid", {"uuid": office_uuid}))
            return Office(uuid=r["uuid"], name=r["name"], updated_at=r.get("updated_at")) if r else None

    def get_level(self, level_uuid: str, *, conn=None) -> Optional[Level]:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(execute(c, "SELECT uuid, name, updated_at FROM levels WHERE uuid=:uuid", {"uuid": level_uuid}))
            return Level(uuid=r["uuid"], name=r["name"], updated_at=r.get("updated_at")) if r else None

    def get_students_by_office_and_level(self, office_uuid: str, level_uuid: str, *, conn=None) -> Sequence[Student]:
        with db_transaction(self._conn_factory, conn) as c:
            rows = fetchall(
                execute(
                    c,
                    """
                    SELECT s.uuid, s.name, s.office_uuid, s.level_uuid, s.updated_at,
                           o.name AS office_name, l.name AS level_name
                    FROM students s
                    LEFT JOIN offices o ON o.uuid = s.office_uuid
                    LEFT JOIN levels l ON l.uuid = s.level_uuid
                    WHERE s.office_uuid=:office AND s.level_uuid=:level
                    ORDER BY s.name ASC
                    """,
                    {"office": office_uuid, "level": level_uuid},
                )
            )
            return [
                Student(
                    uuid=r["uuid"],
                    name=r["name"],
                    office_uuid=r["office_uuid"],
                    level_uuid=r["level_uuid"],
                    office_name=r.get("office_name"),
                    level_name=r.get("level_name"),
                    updated_at=r.get("updated_at"),
                )
                for r in rows
            ]

    def upsert_offices(self, offices: Iterable[Office], *, conn=None) -> int:
        return self._upsert_named("offices", offices, conn=conn)

    def upsert_levels(self, levels: Iterable[Level], *, conn=None) -> int:
        return self._upsert_named("levels", levels, conn=conn)

    def _upsert_named(self, table: str, items, *, conn=None) -> int:
        count = 0
        with db_transaction(self._conn_factory, conn) as c:
            for item in items:
                execute(
                    c,
                    f"""
                    INSERT INTO {table}(uuid, name, updated_at)
                    VALUES(:uuid, :name, :updated_at)
                    ON CONFLICT(uuid) DO UPDATE SET name=excluded.name, updated_at=excluded.updated_at
                    """,
                    {"uuid": item.uuid, "name": item.name, "updated_at": item.updated_at},
                )
                count += 1
        return count

    def upsert_students(self, students: Iterable[Student], *, conn=None) -> int:
        count = 0
        with db_transaction(self._conn_factory, conn) as c:
            for s in students:
                execute(
                    c,
                    """
                    INSERT INTO students(uuid, name, office_uuid, level_uuid, updated_at)
                    VALUES(:uuid, :name, :office_uuid, :level_uuid, :updated_at)
                    ON CONFLICT(uuid) DO UPDATE SET
                        name=excluded.name,
                        office_uuid=excluded.office_uuid,
                        level_uuid=excluded.level_uuid,
                        updated_at=excluded.updated_at
                    """,
                    {
                        "uuid": s.uuid,
                        "name": s.name,
                        "office_uuid": s.office_uuid,
                        "level_uuid": s.level_uuid,
                        "updated_at": s.updated_at,
                    },
                )
                count += 1
        return count

    def delete(self, entity_type: str, uuids: Iterable[str], *, conn=None) -> int:
        table = _TABLES[entity_type]
        removed = 0
        with db_transaction(self._conn_factory, conn) as c:
            for uuid in uuids:
                removed += execute(c, f"DELETE FROM {table} WHERE uuid=:uuid", {"uuid": uuid}).rowcount
        return removed
