from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from ..core.enums import AttendanceStatus, OperationType, RecordState
from ..core.exceptions import DuplicateRecordError
from ..database.base import db_transaction, execute, fetchall, fetchone
from ..database.connection import DatabaseConnection
from .model import AttendanceRecord, StudentAttendanceEntry
from .repository import AttendanceRepository

_COLUMNS = (
    "uuid, date, office_uuid, level_uuid, office_name, level_name, "
    "operation_type, state, created_at, updated_at, server_updated_at"
)


def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        uuid=r["uuid"],
        date=r["date"],
        office_uuid=r["office_uuid"],
        level_uuid=r["level_uuid"],
        office_name=r.get("office_name"),
        level_name=r.get("level_name"),
        operation_type=OperationType(r["operation_type"]) if r.get("operation_type") else None,
        state=RecordState(r["state"]),
        created_at=r["created_at"],
        updated_at=r["updated_at"],
        server_updated_at=r.get("server_updated_at"),
    )


def _params(record: AttendanceRecord) -> Dict[str, Any]:
    return {
        "uuid": record.uuid,
        "date": record.date,
        "office_uuid": record.office_uuid,
        "level_uuid": record.level_uuid,
        "office_name": record.office_name,
        "level_name": record.level_name,
        "operation_type": record.operation_type.value if record.operation_type else None,
        "state": record.state.value,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "server_updated_at": record.server_updated_at,
    }


def _duplicate(record: AttendanceRecord) -> DuplicateRecordError:
    return DuplicateRecordError(
        f"Attendance record already exists for office={record.office_uuid} "
        f"level={record.level_uuid} date={record.date}"
    )


class SQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, uuid: str, *, include_pending_delete: bool = False, conn=None) -> Optional[AttendanceRecord]:
        where = "uuid=:uuid"
        if not include_pending_delete:
            where += " AND state='active'"
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(execute(c, f"SELECT {_COLUMNS} FROM attendance_records WHERE {where}", {"uuid": uuid}))
            return _to_record(r) if r else None

    def find_by_triple(self, *, office_uuid: str, level_uuid: str, date: str, conn=None) -> Optional[AttendanceRecord]:
        with db_transaction(self._conn_factory, conn) as c:
            r = fetchone(
                execute(
                    c,
                    f"""
                    SELECT {_COLUMNS} FROM attendance_records
                    WHERE office_uuid=:office_uuid AND level_uuid=:level_uuid AND date=:date
                    """,
                    {"office_uuid": office_uuid, "level_uuid": level_uuid, "date": date},
                )
            )
            return _to_record(r) if r else None

    def list_active(self, *, conn=None) -> Sequence[AttendanceRecord]:
        with db_transaction(self._conn_factory, conn) as c:
            rows = fetchall(
                execute(
                    c,
                    f"""
                    SELECT {_COLUMNS} FROM attendance_records
                    WHERE state='active'
                    ORDER BY date DESC, updated_at DESC
                    """,
                )
            )
            return [_to_record(r) for r in rows]

    def insert(self, record: AttendanceRecord, *, conn=None) -> None:
        with db_transaction(self._conn_factory, conn) as c:
            try:
                execute(
                    c,
                    f"""
                    INSERT INTO attendance_records({_COLUMNS})
                    VALUES(:uuid, :date, :office_uuid, :level_uuid, :office_name, :level_name,
                           :operation_type, :state, :created_at, :updated_at, :server_updated_at)
                    """,
                    _params(record),
                )
            except IntegrityError as exc:
                raise _duplicate(record) from exc

    def update(self, record: AttendanceRecord, *, conn=None) -> bool:
        with db_transaction(self._conn_factory, conn) as c:
            try:
                result = execute(
                    c,
                    """
                    UPDATE attendance_records
                    SET date=:date, office_uuid=:office_uuid, level_uuid=:level_uuid,
                        office_name=:office_name, level_name=:level_name,
                        operation_type=:operation_type, state=:state,
                        updated_at=:updated_at, server_updated_at=:server_updated_at
                    WHERE uuid=:uuid
                    """,
                    _params(record),
                )
            except IntegrityError as exc:
                raise _duplicate(record) from exc
            return result.rowcount > 0

    def get_entries(self, record_uuid: str, *, conn=None) -> Sequence[StudentAttendanceEntry]:
        with db_transaction(self._conn_factory, conn) as c:
            rows = fetchall(
                execute(
                    c,
                    """
                    SELECT record_uuid, student_uuid, status
                    FROM student_attendances
                    WHERE record_uuid=:record_uuid
                    ORDER BY student_uuid ASC
                    """,
                    {"record_uuid": record_uuid},
                )
            )
            return [
                StudentAttendanceEntry(
                    record_uuid=r["record_uuid"],
                    student_uuid=r["student_uuid"],
                    status=AttendanceStatus(r["status"]),
                )
                for r in rows
            ]

    def replace_entries(self, record_uuid: str, entries: Sequence[StudentAttendanceEntry], *, conn=None) -> None:
        with db_transaction(self._conn_factory, conn) as c:
            execute(c, "DELETE FROM student_attendances WHERE record_uuid=:record_uuid", {"record_uuid": record_uuid})
            for e in entries:
                execute(
                    c,
                    """
                    INSERT INTO student_attendances(record_uuid, student_uuid, status)
                    VALUES(:record_uuid, :student_uuid, :status)
                    """,
                    {"record_uuid": record_uuid, "student_uuid": e.student_uuid, "status": e.status.value},
                )

    def mark(
        self,
        uuid: str,
        *,
        operation_type: Optional[OperationType],
        state: Optional[RecordState] = None,
        server_updated_at: Optional[str] = None,
        conn=None,
    ) -> bool:
        sets = ["operation_type=:operation_type"]
        params: Dict[str, Any] = {
            "uuid": uuid,
            "operation_type": operation_type.value if operation_type else None,
        }
        if state is not None:
            sets.append("state=:state")
            params["state"] = state.value
        if server_updated_at is not None:
            sets.append("server_updated_at=:server_updated_at")
            params["server_updated_at"] = server_updated_at

        with db_transaction(self._conn_factory, conn) as c:
            result = execute(c, f"UPDATE attendance_records SET {', '.join(sets)} WHERE uuid=:uuid", params)
            return result.rowcount > 0

    def purge(self, uuid: str, *, conn=None) -> bool:
        with db_transaction(self._conn_factory, conn) as c:
            execute(c, "DELETE FROM student_attendances WHERE record_uuid=:uuid", {"uuid": uuid})
            return execute(c, "DELETE FROM attendance_records WHERE uuid=:uuid", {"uuid": uuid}).rowcount > 0

    def save_remote(self, record: AttendanceRecord, entries: Sequence[StudentAttendanceEntry], *, conn=None) -> None:
        with db_transaction(self._conn_factory, conn) as c:
            params = _params(record)
            existing = fetchone(execute(c, "SELECT uuid FROM attendance_records WHERE uuid=:uuid", {"uuid": record.uuid}))
            if existing:
                execute(
                    c,
                    """
                    UPDATE attendance_records
                    SET date=:date, office_uuid=:office_uuid, level_uuid=:level_uuid,
                        office_name=COALESCE(:office_name, (SELECT name FROM offices WHERE uuid=:office_uuid), office_name),
                        level_name=COALESCE(:level_name, (SELECT name FROM levels WHERE uuid=:level_uuid), level_name),
                        operation_type=NULL, state='active',
                        updated_at=:updated_at, server_updated_at=:server_updated_at
                    WHERE uuid=:uuid
                    """,
                    params,
                )
            else:
                execute(
                    c,
                    f"""
                    INSERT INTO attendance_records({_COLUMNS})
                    VALUES(:uuid, :date, :office_uuid, :level_uuid,
                           COALESCE(:office_name, (SELECT name FROM offices WHERE uuid=:office_uuid)),
                           COALESCE(:level_name, (SELECT name FROM levels WHERE uuid=:level_uuid)),
                           NULL, 'active', :created_at, :updated_at, :server_updated_at)
                    """,
                    params,
                )
            self.replace_entries(record.uuid, entries, conn=c)

    def refresh_display_names(self, *, conn=None) -> int:
        with db_transaction(self._conn_factory, conn) as c:
            offices = execute(
                c,
                """
                UPDATE attendance_records
                SET office_name = (SELECT o.name FROM offices o WHERE o.uuid = attendance_records.office_uuid)
                WHERE EXISTS (
                    SELECT 1 FROM offices o
                    WHERE o.uuid = attendance_records.office_uuid
                      AND (attendance_records.office_name IS NULL OR o.name <> attendance_records.office_name)
                )
                """,
            ).rowcount
            levels = execute(
                c,
                """
                UPDATE attendance_records
                SET level_name = (SELECT l.name FROM levels l WHERE l.uuid = attendance_records.level_uuid)
                WHERE EXISTS (
                    SELECT 1 FROM levels l
                    WHERE l.uuid = attendance_records.level_uuid
                      AND (attendance_records.level_name IS NULL OR l.name <> attendance_records.level_name)
                )
                """,
            ).rowcount
            return int(offices) + int(levels)
