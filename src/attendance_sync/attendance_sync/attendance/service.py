from __future__ import annotations

import logging
import uuid as uuidlib
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..changes.model import NewChange
from ..changes.service import ChangeQueue
from ..common.datetime_utils import now_iso, parse_iso_date
from ..common.validators import require_choice, require_non_empty
from ..core.constants import ATTENDANCE_TABLE
from ..core.enums import AttendanceStatus, OperationType, RecordState
from ..core.exceptions import DuplicateRecordError, NotFoundError, ValidationError
from ..database.base import db_transaction
from ..database.connection import DatabaseConnection
from ..reference.service import ReferenceDataService
from .model import (
    AttendanceRecord,
    RosterLine,
    StudentAttendanceEntry,
    StudentStatus,
    build_snapshot,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class RecordStore:
    """Local, offline-first storage of attendance records.

    Every mutation writes the record and appends its queue entry in one
    transaction, so the store and the queue never diverge.
    """

    def __init__(
        self,
        conn_factory: DatabaseConnection,
        attendance: AttendanceRepository,
        changes: ChangeQueue,
        reference: ReferenceDataService,
    ):
        self._conn_factory = conn_factory
        self._attendance = attendance
        self._changes = changes
        self._reference = reference

    # ----- writes -----

    def save_attendance(
        self,
        date: str,
        office_id: str,
        level_id: str,
        student_statuses: Iterable[Any],
        existing_id: Optional[str] = None,
    ) -> str:
        day = parse_iso_date(date).isoformat()
        office_id = require_non_empty(office_id, "Office")
        level_id = require_non_empty(level_id, "Level")
        statuses = self._normalize_statuses(student_statuses)
        now = now_iso()

        with db_transaction(self._conn_factory) as conn:
            office = self._reference.get_office(office_id, conn=conn)
            if not office:
                raise ValidationError(f"Unknown office: {office_id}")
            level = self._reference.get_level(level_id, conn=conn)
            if not level:
                raise ValidationError(f"Unknown level: {level_id}")

            roster = self._reference.get_students_by_office_and_level(office_id, level_id, conn=conn)
            clash = self._attendance.find_by_triple(office_uuid=office_id, level_uuid=level_id, date=day, conn=conn)

            if existing_id is None:
                if clash:
                    raise DuplicateRecordError(
                        f"Attendance record already exists for this office, level and date ({day})"
                    )
                record = AttendanceRecord(
                    uuid=str(uuidlib.uuid4()),
                    date=day,
                    office_uuid=office_id,
                    level_uuid=level_id,
                    office_name=office.name,
                    level_name=level.name,
                    operation_type=OperationType.CREATE,
                    state=RecordState.ACTIVE,
                    created_at=now,
                    updated_at=now,
                )
                change_op = OperationType.CREATE
                entries = self._build_entries(record.uuid, roster, statuses)
                self._attendance.insert(record, conn=conn)
            else:
                current = self._attendance.get(existing_id, conn=conn)
                if not current:
                    raise NotFoundError(f"Attendance record not found: {existing_id}")
                if clash and clash.uuid != current.uuid:
                    raise DuplicateRecordError(
                        f"Attendance record already exists for this office, level and date ({day})"
                    )
                # An unsynced creation stays a creation, just with newer content.
                marker = OperationType.CREATE if current.operation_type == OperationType.CREATE else OperationType.UPDATE
                record = replace(
                    current,
                    date=day,
                    office_uuid=office_id,
                    level_uuid=level_id,
                    office_name=office.name,
                    level_name=level.name,
                    operation_type=marker,
                    updated_at=now,
                )
                change_op = OperationType.UPDATE
                entries = self._build_entries(record.uuid, roster, statuses)
                self._attendance.update(record, conn=conn)

            self._attendance.replace_entries(record.uuid, entries, conn=conn)
            self._changes.append(
                NewChange(
                    table_name=ATTENDANCE_TABLE,
                    entity_id=record.uuid,
                    operation=change_op,
                    payload=build_snapshot(record, entries),
                    created_at=now,
                ),
                conn=conn,
            )

        logger.info(
            "Saved attendance %s (%s, %d students, pending=%s)",
            record.uuid,
            change_op.value,
            len(entries),
            record.operation_type.value if record.operation_type else None,
        )
        return record.uuid

    def delete_attendance_record(self, record_id: str) -> bool:
        """Delete locally and queue the intent.

        Returns False when there is no active record with that id.
        """

        with db_transaction(self._conn_factory) as conn:
            record = self._attendance.get(record_id, conn=conn)
            if not record:
                return False

            if record.operation_type == OperationType.CREATE:
                # Never reached the remote: nothing to tell it, drop everything now.
                dropped = self._changes.discard_for_entity(ATTENDANCE_TABLE, record.uuid, conn=conn)
                self._attendance.purge(record.uuid, conn=conn)
                logger.info("Purged unsynced attendance %s (dropped %d queued changes)", record.uuid, dropped)
                return True

            now = now_iso()
            entries = self._attendance.get_entries(record.uuid, conn=conn)
            pending = replace(record, operation_type=OperationType.DELETE, state=RecordState.PENDING_DELETE, updated_at=now)
            self._attendance.mark(
                record.uuid,
                operation_type=OperationType.DELETE,
                state=RecordState.PENDING_DELETE,
                conn=conn,
            )
            self._changes.append(
                NewChange(
                    table_name=ATTENDANCE_TABLE,
                    entity_id=record.uuid,
                    operation=OperationType.DELETE,
                    payload=build_snapshot(pending, entries),
                    created_at=now,
                ),
                conn=conn,
            )

        logger.info("Attendance %s marked for deletion", record_id)
        return True

    # ----- reads -----

    def get_all_attendance_records(self, query: Optional[str] = None) -> List[AttendanceRecord]:
        records = list(self._attendance.list_active())
        q = (query or "").strip().lower()
        if not q:
            return records
        return [
            r
            for r in records
            if q in r.date.lower() or q in (r.office_name or "").lower() or q in (r.level_name or "").lower()
        ]

    def get_attendance_record_by_uuid(self, record_id: str) -> Optional[AttendanceRecord]:
        return self._attendance.get(record_id)

    def get_student_attendance_for_record(self, record_id: str) -> Sequence[StudentAttendanceEntry]:
        return self._attendance.get_entries(record_id)

    def get_form_roster(self, office_id: str, level_id: str, record_id: Optional[str] = None) -> List[RosterLine]:
        """Roster of (office, level) with each student's saved status (default absent)."""

        students = self._reference.get_students_by_office_and_level(office_id, level_id)
        saved: Dict[str, AttendanceStatus] = {}
        if record_id:
            saved = {e.student_uuid: e.status for e in self._attendance.get_entries(record_id)}
        return [
            RosterLine(student_uuid=s.uuid, name=s.name, status=saved.get(s.uuid, AttendanceStatus.ABSENT))
            for s in students
        ]

    def get_unsynced_count(self) -> int:
        return self._changes.unsynced_count(ATTENDANCE_TABLE)

    # ----- helpers -----

    @staticmethod
    def _normalize_statuses(raw: Iterable[Any]) -> Dict[str, AttendanceStatus]:
        statuses: Dict[str, AttendanceStatus] = {}
        for item in raw or []:
            if isinstance(item, StudentStatus):
                student_uuid, status = item.student_uuid, item.status
            elif isinstance(item, dict):
                student_uuid = item.get("student_uuid") or item.get("studentUuid")
                status = item.get("status")
            else:
                student_uuid, status = item

            student_uuid = require_non_empty(student_uuid, "Student")
            if not isinstance(status, AttendanceStatus):
                status = require_choice(status, "Status", AttendanceStatus)
            if student_uuid in statuses:
                raise ValidationError(f"Duplicate status for student {student_uuid}")
            statuses[student_uuid] = status
        return statuses

    @staticmethod
    def _build_entries(record_uuid: str, roster, statuses: Dict[str, AttendanceStatus]) -> List[StudentAttendanceEntry]:
        if not roster:
            raise ValidationError("No students to save for this office and level")

        roster_ids = {s.uuid for s in roster}
        unknown = sorted(set(statuses) - roster_ids)
        if unknown:
            raise ValidationError(f"Students not on the roster: {', '.join(unknown)}")

        return [
            StudentAttendanceEntry(
                record_uuid=record_uuid,
                student_uuid=s.uuid,
                status=statuses.get(s.uuid, AttendanceStatus.ABSENT),
            )
            for s in roster
        ]
