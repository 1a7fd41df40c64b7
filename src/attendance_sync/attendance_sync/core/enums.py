from __future__ import annotations

from enum import Enum


class OperationType(str, Enum):
    """Pending local mutation carried by a record and its queue entries."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AttendanceStatus(str, Enum):
    """Per-student status stored on a StudentAttendanceEntry."""

    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


class RecordState(str, Enum):
    """Lifecycle of an attendance record.

    PENDING_DELETE rows stay in storage until the remote acknowledges the
    delete. PURGED is the terminal state: a purge removes the row, so it is
    never stored or returned and only names the end of the lifecycle.
    """

    ACTIVE = "active"
    PENDING_DELETE = "pending_delete"
    PURGED = "purged"


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PushOutcome(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
