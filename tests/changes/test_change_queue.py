from __future__ import annotations

import pytest

from src.attendance_sync.attendance_sync.changes.model import NewChange
from src.attendance_sync.attendance_sync.changes.service import ChangeQueue
from src.attendance_sync.attendance_sync.core.enums import OperationType

TABLE = "attendance_records"


def _change(entity_id, op=OperationType.UPDATE, n=0):
    return NewChange(
        table_name=TABLE,
        entity_id=entity_id,
        operation=op,
        payload={"uuid": entity_id, "n": n},
        created_at=f"2026-01-01T00:00:0{n}+00:00",
    )


def test_entries_are_returned_in_creation_order(queue):
    a = queue.append(_change("r1", OperationType.CREATE, 0))
    b = queue.append(_change("r2", OperationType.CREATE, 1))
    c = queue.append(_change("r1", OperationType.UPDATE, 2))

    assert [e.seq for e in queue.get_unsynced_changes(TABLE)] == [a, b, c]
    assert [e.seq for e in queue.pending_for_entity(TABLE, "r1")] == [a, c]
    assert queue.get(b).payload == {"uuid": "r2", "n": 1}


def test_tables_are_counted_separately(queue):
    queue.append(_change("r1"))
    queue.append(NewChange("other_table", "x", OperationType.CREATE, {}, "2026-01-01T00:00:00+00:00"))

    assert queue.unsynced_count(TABLE) == 1
    assert queue.unsynced_count("other_table") == 1


def test_acknowledge_is_idempotent(queue):
    seq = queue.append(_change("r1"))
    other = queue.append(_change("r2"))

    assert queue.acknowledge(seq) is True
    assert queue.acknowledge(seq) is False
    assert [e.seq for e in queue.get_unsynced_changes(TABLE)] == [other]


def test_entry_is_poisoned_at_the_attempt_ceiling(queue):
    seq = queue.append(_change("r1"))

    for _ in range(queue.max_attempts - 1):
        entry = queue.increment_attempt(seq, error="timeout")
        assert not entry.poisoned

    entry = queue.increment_attempt(seq, error="timeout")
    assert entry.poisoned
    assert entry.attempts == queue.max_attempts
    assert entry.last_error == "timeout"
    assert [e.seq for e in queue.poisoned_entries(TABLE)] == [seq]


def test_poisoned_entry_holds_back_later_entries_of_the_same_entity(queue):
    first = queue.append(_change("r1", n=0))
    queue.append(_change("r1", n=1))
    other = queue.append(_change("r2", n=2))
    for _ in range(queue.max_attempts):
        queue.increment_attempt(first)

    entries, held_back = queue.pushable_changes(TABLE)

    assert [e.seq for e in entries] == [other]
    assert held_back == 1
    assert queue.unsynced_count(TABLE) == 3


def test_retry_poisoned_resets_attempts(queue):
    seq = queue.append(_change("r1"))
    for _ in range(queue.max_attempts):
        queue.increment_attempt(seq)

    assert queue.retry_poisoned(seq) is True
    entry = queue.get(seq)
    assert not entry.poisoned
    assert entry.attempts == 0
    assert queue.retry_poisoned(seq) is False


def test_discard_for_entity_only_touches_that_entity(queue):
    queue.append(_change("r1", n=0))
    queue.append(_change("r1", n=1))
    keep = queue.append(_change("r2", n=2))

    assert queue.discard_for_entity(TABLE, "r1") == 2
    assert [e.seq for e in queue.get_unsynced_changes(TABLE)] == [keep]


def test_max_attempts_must_be_positive(container):
    with pytest.raises(ValueError):
        ChangeQueue(container.changes_repo, max_attempts=0)
