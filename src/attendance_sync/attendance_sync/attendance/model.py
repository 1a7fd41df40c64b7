from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.enums import AttendanceStatus, OperationType, RecordState


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance sheet for an (office, level, date)."""

    uuid: str
    date: str
    office_uuid: str
    level_uuid: str
    office_name: Optional[str]
    level_name: Optional[str]
    operation_type: Optional[OperationType]
    state: RecordState
    created_at: str
    updated_at: str
    server_updated_at: Optional[str] = None

    @property
    def is_synced(self) -> bool:
        return self.operation_type is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "date": self.date,
            "office_uuid": self.office_uuid,
            "level_uuid": self.level_uuid,
            "office_name": self.office_name,
            "level_name": self.level_name,
            "operation_type": self.operation_type.value if self.operation_type else None,
            "state": self.state.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "server_updated_at": self.server_updated_at,
        }


@dataclass(frozen=True)
class StudentAttendanceEntry:
    record_uuid: str
    student_uuid: str
    status: AttendanceStatus

    def to_dict(self) -> Dict[str, Any]:
        return {"record_uuid": self.record_uuid, "student_uuid": self.student_uuid, "status": self.status.value}


@dataclass(frozen=True)
class StudentStatus:
    """Form input line: the status chosen for one student."""

    student_uuid: str
    status: AttendanceStatus


@dataclass(frozen=True)
class RosterLine:
    """Read-model for the form screen: roster member plus current status."""

    student_uuid: str
    name: str
    status: AttendanceStatus

    def to_dict(self) -> Dict[str, Any]:
        return {"student_uuid": self.student_uuid, "name": self.name, "status": self.status.value}


def build_snapshot(record: AttendanceRecord, entries: Sequence[StudentAttendanceEntry]) -> Dict[str, Any]:
    """Payload carried by a queue entry; enough to replay without local reads."""

    return {
        "uuid": record.uuid,
        "date": record.date,
        "office_uuid": record.office_uuid,
        "level_uuid": record.level_uuid,
        "office_name": record.office_name,
        "level_name": record.level_name,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "server_updated_at": record.server_updated_at,
        "students": [{"student_uuid": e.student_uuid, "status": e.status.value} for e in entries],
    }


def parse_remote_record(data: Dict[str, Any]) -> Tuple[AttendanceRecord, List[StudentAttendanceEntry]]:
    """Build a synced local record from a server representation."""

    uuid = str(data["uuid"])
    server_updated_at = data.get("updated_at") or data.get("server_updated_at")
    record = AttendanceRecord(
        uuid=uuid,
        date=str(data["date"])[:10],
        office_uuid=str(data["office_uuid"]),
        level_uuid=str(data["level_uuid"]),
        office_name=data.get("office_name"),
        level_name=data.get("level_name"),
        operation_type=None,
        state=RecordState.ACTIVE,
        created_at=data.get("created_at") or server_updated_at or "",
        updated_at=server_updated_at or data.get("created_at") or "",
        server_updated_at=server_updated_at,
    )
    entries = [
        StudentAttendanceEntry(
            record_uuid=uuid,
            student_uuid=str(s["student_uuid"]),
            status=AttendanceStatus(s["status"]),
        )
        for s in data.get("students") or []
    ]
    return record, entries
