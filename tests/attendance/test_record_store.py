from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from src.attendance_sync.attendance_sync.core.constants import ATTENDANCE_TABLE
from src.attendance_sync.attendance_sync.core.enums import AttendanceStatus, OperationType, RecordState
from src.attendance_sync.attendance_sync.core.exceptions import (
    DuplicateRecordError,
    NotFoundError,
    StorageFullError,
    ValidationError,
)
from src.attendance_sync.attendance_sync.attendance.model import StudentStatus


STATUSES = [
    {"student_uuid": "s1", "status": "present"},
    {"student_uuid": "s2", "status": "excused"},
    {"student_uuid": "s3", "status": "absent"},
]


def test_save_new_record_marks_create_and_queues_one_entry(store, queue):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)

    record = store.get_attendance_record_by_uuid(rid)
    assert record.operation_type == OperationType.CREATE
    assert record.state == RecordState.ACTIVE
    assert record.office_name == "Main Office"
    assert record.level_name == "Beginner"

    entries = queue.get_unsynced_changes(ATTENDANCE_TABLE)
    assert [(e.entity_id, e.operation) for e in entries] == [(rid, OperationType.CREATE)]
    assert entries[0].payload["date"] == "2026-01-10"
    assert len(entries[0].payload["students"]) == 3


def test_statuses_read_back_exactly(store):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)

    saved = {e.student_uuid: e.status for e in store.get_student_attendance_for_record(rid)}
    assert saved == {
        "s1": AttendanceStatus.PRESENT,
        "s2": AttendanceStatus.EXCUSED,
        "s3": AttendanceStatus.ABSENT,
    }


def test_students_missing_from_input_default_to_absent(store):
    rid = store.save_attendance(
        "2026-01-10", "office-1", "level-1", [StudentStatus("s1", AttendanceStatus.PRESENT)]
    )

    saved = {e.student_uuid: e.status for e in store.get_student_attendance_for_record(rid)}
    assert saved == {"s1": AttendanceStatus.PRESENT, "s2": AttendanceStatus.ABSENT, "s3": AttendanceStatus.ABSENT}


def test_duplicate_triple_is_rejected_and_queue_is_unchanged(store, queue):
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    before = [e.seq for e in queue.get_unsynced_changes(ATTENDANCE_TABLE)]

    with pytest.raises(DuplicateRecordError):
        store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)

    assert [e.seq for e in queue.get_unsynced_changes(ATTENDANCE_TABLE)] == before
    assert len(store.get_all_attendance_records()) == 1


def test_same_office_level_on_another_date_is_allowed(store):
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    store.save_attendance("2026-01-11", "office-1", "level-1", STATUSES)

    assert [r.date for r in store.get_all_attendance_records()] == ["2026-01-11", "2026-01-10"]


def test_edit_of_unsynced_record_keeps_create_marker_and_appends_update(store, queue):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)

    store.save_attendance("2026-01-10", "office-1", "level-1", [{"student_uuid": "s3", "status": "present"}], existing_id=rid)

    assert store.get_attendance_record_by_uuid(rid).operation_type == OperationType.CREATE
    ops = [e.operation for e in queue.get_unsynced_changes(ATTENDANCE_TABLE)]
    assert ops == [OperationType.CREATE, OperationType.UPDATE]
    saved = {e.student_uuid: e.status for e in store.get_student_attendance_for_record(rid)}
    assert saved["s3"] == AttendanceStatus.PRESENT
    assert saved["s1"] == AttendanceStatus.ABSENT


def test_edit_onto_another_records_triple_is_a_duplicate(store):
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    other = store.save_attendance("2026-01-11", "office-1", "level-1", STATUSES)

    with pytest.raises(DuplicateRecordError):
        store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES, existing_id=other)


def test_edit_of_unknown_record_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES, existing_id="missing")


@pytest.mark.parametrize(
    "date, office, level, statuses",
    [
        ("10/01/2026", "office-1", "level-1", STATUSES),
        ("2026-01-10", "", "level-1", STATUSES),
        ("2026-01-10", "office-x", "level-1", STATUSES),
        ("2026-01-10", "office-1", "level-x", STATUSES),
        ("2026-01-10", "office-1", "level-2", []),
        ("2026-01-10", "office-1", "level-1", [{"student_uuid": "s4", "status": "present"}]),
        ("2026-01-10", "office-1", "level-1", [{"student_uuid": "s1", "status": "late"}]),
        ("2026-01-10", "office-1", "level-1", [("s1", "present"), ("s1", "absent")]),
    ],
)
def test_invalid_input_is_rejected_without_side_effects(store, queue, date, office, level, statuses):
    with pytest.raises(ValidationError):
        store.save_attendance(date, office, level, statuses)

    assert store.get_all_attendance_records() == []
    assert queue.unsynced_count(ATTENDANCE_TABLE) == 0


def test_delete_of_unsynced_creation_leaves_nothing(store, queue, remote):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES, existing_id=rid)

    assert store.delete_attendance_record(rid) is True

    assert store.get_attendance_record_by_uuid(rid) is None
    assert store.get_student_attendance_for_record(rid) == []
    assert queue.unsynced_count(ATTENDANCE_TABLE) == 0
    assert remote.pushed == []


def test_delete_of_synced_record_is_soft_until_acknowledged(container, store, queue):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    container.sync_manager.sync_entity("attendance")
    assert store.get_attendance_record_by_uuid(rid).is_synced

    assert store.delete_attendance_record(rid) is True

    assert store.get_attendance_record_by_uuid(rid) is None
    hidden = container.attendance_repo.get(rid, include_pending_delete=True)
    assert hidden.state == RecordState.PENDING_DELETE
    assert hidden.operation_type == OperationType.DELETE
    assert [e.operation for e in queue.get_unsynced_changes(ATTENDANCE_TABLE)] == [OperationType.DELETE]


def test_pending_delete_still_blocks_the_triple(container, store):
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    container.sync_manager.sync_entity("attendance")
    store.delete_attendance_record(rid)

    with pytest.raises(DuplicateRecordError):
        store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)


def test_delete_of_unknown_record_returns_false(store):
    assert store.delete_attendance_record("missing") is False


def test_search_matches_date_and_display_names(store):
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    store.save_attendance("2026-01-12", "office-2", "level-1", [{"student_uuid": "s4", "status": "present"}])

    assert [r.office_name for r in store.get_all_attendance_records("annex")] == ["Annex"]
    assert [r.date for r in store.get_all_attendance_records("2026-01-10")] == ["2026-01-10"]
    assert len(store.get_all_attendance_records("beginner")) == 2
    assert store.get_all_attendance_records("nothing") == []


def test_form_roster_defaults_to_absent_and_overlays_saved_statuses(store):
    blank = store.get_form_roster("office-1", "level-1")
    assert [(line.student_uuid, line.status) for line in blank] == [
        ("s1", AttendanceStatus.ABSENT),
        ("s2", AttendanceStatus.ABSENT),
        ("s3", AttendanceStatus.ABSENT),
    ]

    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    filled = {line.student_uuid: line.status for line in store.get_form_roster("office-1", "level-1", rid)}
    assert filled["s1"] == AttendanceStatus.PRESENT
    assert filled["s2"] == AttendanceStatus.EXCUSED


def test_unsynced_count_tracks_queue(store):
    assert store.get_unsynced_count() == 0
    rid = store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
    store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES, existing_id=rid)
    assert store.get_unsynced_count() == 2


def test_full_disk_while_queueing_rolls_back_the_record(container, store, queue, monkeypatch):
    def disk_full(change, *, conn=None):
        raise OperationalError("INSERT", {}, Exception("database or disk is full"))

    monkeypatch.setattr(container.changes_repo, "append", disk_full)

    with pytest.raises(StorageFullError):
        store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)

    monkeypatch.undo()
    assert store.get_all_attendance_records() == []
    assert queue.unsynced_count(ATTENDANCE_TABLE) == 0
    # The triple is still free.
    assert store.save_attendance("2026-01-10", "office-1", "level-1", STATUSES)
