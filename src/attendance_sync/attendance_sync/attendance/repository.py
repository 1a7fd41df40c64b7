from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import OperationType, RecordState
from .model import AttendanceRecord, StudentAttendanceEntry


class AttendanceRepository(Protocol):
    def get(self, uuid: str, *, include_pending_delete: bool = False, conn=None) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def find_by_triple(self, *, office_uuid: str, level_uuid: str, date: str, conn=None) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_active(self, *, conn=None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def insert(self, record: AttendanceRecord, *, conn=None) -> None:
        raise NotImplementedError

    def update(self, record: AttendanceRecord, *, conn=None) -> bool:
        raise NotImplementedError

    def get_entries(self, record_uuid: str, *, conn=None) -> Sequence[StudentAttendanceEntry]:
        raise NotImplementedError

    def replace_entries(self, record_uuid: str, entries: Sequence[StudentAttendanceEntry], *, conn=None) -> None:
        raise NotImplementedError

    def mark(
        self,
        uuid: str,
        *,
        operation_type: Optional[OperationType],
        state: Optional[RecordState] = None,
        server_updated_at: Optional[str] = None,
        conn=None,
    ) -> bool:
        """Set the pending-mutation marker (and optionally state/server time)."""

        raise NotImplementedError

    def purge(self, uuid: str, *, conn=None) -> bool:
        raise NotImplementedError

    def save_remote(self, record: AttendanceRecord, entries: Sequence[StudentAttendanceEntry], *, conn=None) -> None:
        """Insert or overwrite a record with the server's version (synced)."""

        raise NotImplementedError

    def refresh_display_names(self, *, conn=None) -> int:
        raise NotImplementedError
