from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from ..attendance.model import parse_remote_record
from ..attendance.repository import AttendanceRepository
from ..changes.model import ChangeQueueEntry, NewChange
from ..changes.service import ChangeQueue
from ..core.constants import ATTENDANCE_TABLE, ENTITY_ATTENDANCE, ENTITY_LEVELS, ENTITY_OFFICES, ENTITY_STUDENTS
from ..common.datetime_utils import now_iso, parse_iso_datetime
from ..core.enums import OperationType
from ..core.exceptions import ConflictError, ValidationError
from ..reference.model import Level, Office, Student
from ..reference.repository import ReferenceRepository
from .model import MergeStats
from .remote import PushResult

logger = logging.getLogger(__name__)


class SyncHandler(Protocol):
    """Entity-specific half of a sync run.

    ``table_name`` is None for pull-only entity types. Every method runs
    inside the caller's transaction (``conn``).
    """

    entity_type: str
    table_name: Optional[str]

    def on_acknowledged(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> None:
        raise NotImplementedError

    def on_conflict(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> ConflictError:
        raise NotImplementedError

    def merge(self, records: Sequence[Dict[str, Any]], *, conn) -> MergeStats:
        raise NotImplementedError


class AttendanceSyncHandler(SyncHandler):
    entity_type = ENTITY_ATTENDANCE
    table_name = ATTENDANCE_TABLE

    def __init__(self, attendance: AttendanceRepository, changes: ChangeQueue):
        self._attendance = attendance
        self._changes = changes

    def on_acknowledged(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> None:
        still_queued = self._changes.acknowledge(entry.seq, conn=conn)

        if entry.operation == OperationType.DELETE:
            self._attendance.purge(entry.entity_id, conn=conn)
            return

        if not still_queued and self._attendance.get(entry.entity_id, include_pending_delete=True, conn=conn) is None:
            # Purged locally while the push was in flight; the remote still has it.
            self._changes.append(
                NewChange(
                    table_name=self.table_name,
                    entity_id=entry.entity_id,
                    operation=OperationType.DELETE,
                    payload=entry.payload,
                    created_at=now_iso(),
                ),
                conn=conn,
            )
            logger.info("Queued delete of attendance %s removed during its push", entry.entity_id)
            return

        # The marker reflects what is still queued for this record, not what was just sent.
        remaining = self._changes.pending_for_entity(self.table_name, entry.entity_id, conn=conn)
        ops = {e.operation for e in remaining}
        if OperationType.DELETE in ops:
            marker: Optional[OperationType] = OperationType.DELETE
        elif ops:
            marker = OperationType.UPDATE
        else:
            marker = None
        self._attendance.mark(
            entry.entity_id,
            operation_type=marker,
            server_updated_at=result.server_updated_at,
            conn=conn,
        )

    def on_conflict(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> ConflictError:
        dropped = self._changes.discard_for_entity(self.table_name, entry.entity_id, conn=conn)
        label = entry.payload.get("date") or entry.entity_id

        if result.deleted or not result.server_record:
            self._attendance.purge(entry.entity_id, conn=conn)
            notice = f"Local {entry.operation.value} of attendance {label} discarded: the record was deleted remotely"
        else:
            record, entries = parse_remote_record(result.server_record)
            if record.uuid != entry.entity_id:
                # Remote already has a record for the same office, level and date.
                self._attendance.purge(entry.entity_id, conn=conn)
            self._evict_clash(record.office_uuid, record.level_uuid, record.date, keep=record.uuid, conn=conn)
            self._attendance.save_remote(record, entries, conn=conn)
            notice = (
                f"Local {entry.operation.value} of attendance {label} discarded: "
                f"remote version from {record.server_updated_at or 'the server'} kept"
            )

        logger.warning("%s (%d queued change(s) dropped)", notice, dropped)
        return ConflictError(notice, entity_id=entry.entity_id, operation=entry.operation.value, dropped=dropped)

    def merge(self, records: Sequence[Dict[str, Any]], *, conn) -> MergeStats:
        applied = purged = 0
        deferred_at: List[Optional[str]] = []
        for data in records:
            uuid = str(data.get("uuid") or "")
            if not uuid:
                raise ValidationError("Remote attendance record without uuid")

            if self._changes.pending_for_entity(self.table_name, uuid, conn=conn):
                # Local intent not pushed yet; it is resolved on push.
                deferred_at.append(data.get("updated_at"))
                continue

            if data.get("deleted"):
                if self._attendance.purge(uuid, conn=conn):
                    purged += 1
                continue

            record, entries = parse_remote_record(data)
            clash = self._attendance.find_by_triple(
                office_uuid=record.office_uuid, level_uuid=record.level_uuid, date=record.date, conn=conn
            )
            if clash and clash.uuid != record.uuid and not clash.is_synced:
                deferred_at.append(data.get("updated_at"))
                continue
            self._evict_clash(record.office_uuid, record.level_uuid, record.date, keep=record.uuid, conn=conn)
            self._attendance.save_remote(record, entries, conn=conn)
            applied += 1

        oldest = None
        if deferred_at and all(deferred_at):
            oldest = min(deferred_at, key=parse_iso_datetime)
        return MergeStats(applied=applied, purged=purged, deferred=len(deferred_at), oldest_deferred=oldest)

    def _evict_clash(self, office_uuid: str, level_uuid: str, date: str, *, keep: str, conn) -> None:
        clash = self._attendance.find_by_triple(office_uuid=office_uuid, level_uuid=level_uuid, date=date, conn=conn)
        if clash and clash.uuid != keep:
            self._changes.discard_for_entity(self.table_name, clash.uuid, conn=conn)
            self._attendance.purge(clash.uuid, conn=conn)
            logger.info("Replaced local attendance %s with remote %s for %s", clash.uuid, keep, date)


class ReferenceSyncHandler(SyncHandler):
    """Pull-only handler for offices, levels and students."""

    table_name = None

    def __init__(self, entity_type: str, reference: ReferenceRepository, attendance: AttendanceRepository):
        if entity_type not in (ENTITY_OFFICES, ENTITY_LEVELS, ENTITY_STUDENTS):
            raise ValueError(f"Not a reference entity type: {entity_type}")
        self.entity_type = entity_type
        self._reference = reference
        self._attendance = attendance

    def on_acknowledged(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> None:
        raise NotImplementedError(f"{self.entity_type} is pull-only")

    def on_conflict(self, entry: ChangeQueueEntry, result: PushResult, *, conn) -> ConflictError:
        raise NotImplementedError(f"{self.entity_type} is pull-only")

    def merge(self, records: Sequence[Dict[str, Any]], *, conn) -> MergeStats:
        removed = [str(r["uuid"]) for r in records if r.get("deleted")]
        kept = [r for r in records if not r.get("deleted")]

        if self.entity_type == ENTITY_STUDENTS:
            applied = self._reference.upsert_students(self._students(kept), conn=conn)
        elif self.entity_type == ENTITY_OFFICES:
            applied = self._reference.upsert_offices(
                (Office(uuid=str(r["uuid"]), name=r["name"], updated_at=r.get("updated_at")) for r in kept), conn=conn
            )
        else:
            applied = self._reference.upsert_levels(
                (Level(uuid=str(r["uuid"]), name=r["name"], updated_at=r.get("updated_at")) for r in kept), conn=conn
            )
        purged = self._reference.delete(self.entity_type, removed, conn=conn) if removed else 0

        if self.entity_type != ENTITY_STUDENTS and applied:
            renamed = self._attendance.refresh_display_names(conn=conn)
            if renamed:
                logger.info("Refreshed display names on %d attendance record(s)", renamed)
        return MergeStats(applied=applied, purged=purged)

    @staticmethod
    def _students(rows: Iterable[Dict[str, Any]]):
        for r in rows:
            yield Student(
                uuid=str(r["uuid"]),
                name=r["name"],
                office_uuid=str(r["office_uuid"]),
                level_uuid=str(r["level_uuid"]),
                updated_at=r.get("updated_at"),
            )
