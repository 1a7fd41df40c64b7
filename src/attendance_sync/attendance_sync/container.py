from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.service import RecordStore
from .attendance.sql_attendance_repository import SQLAttendanceRepository
from .changes.service import ChangeQueue
from .changes.sql_change_queue_repository import SQLChangeQueueRepository
from .core.constants import (
    DEFAULT_LOCAL_DB_URL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_REMOTE_TIMEOUT,
    ENTITY_LEVELS,
    ENTITY_OFFICES,
    ENTITY_STUDENTS,
)
from .database.connection import DBConfig, DatabaseConnection
from .reference.service import ReferenceDataService
from .reference.sql_reference_repository import SQLReferenceRepository
from .sync.connectivity import ConnectivityMonitor
from .sync.handlers import AttendanceSyncHandler, ReferenceSyncHandler
from .sync.manager import SyncManager
from .sync.remote import HttpRemoteGateway, RemoteGateway
from .sync.sql_watermark_repository import SQLWatermarkRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    reference_repo: SQLReferenceRepository
    attendance_repo: SQLAttendanceRepository
    changes_repo: SQLChangeQueueRepository
    watermarks_repo: SQLWatermarkRepository

    remote: RemoteGateway
    reference_service: ReferenceDataService
    change_queue: ChangeQueue
    record_store: RecordStore
    sync_manager: SyncManager
    connectivity: ConnectivityMonitor


def build_container(
    *,
    db_url: str = DEFAULT_LOCAL_DB_URL,
    remote_config: Optional[dict] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    remote: Optional[RemoteGateway] = None,
) -> Container:
    conn = DatabaseConnection(DBConfig(url=str(db_url)))

    reference_repo = SQLReferenceRepository(conn)
    attendance_repo = SQLAttendanceRepository(conn)
    changes_repo = SQLChangeQueueRepository(conn)
    watermarks_repo = SQLWatermarkRepository(conn)

    if remote is None:
        remote_config = remote_config or {}
        remote = HttpRemoteGateway(
            str(remote_config.get("base_url") or ""),
            api_key=remote_config.get("api_key") or None,
            timeout=float(remote_config.get("timeout", DEFAULT_REMOTE_TIMEOUT)),
        )

    reference_service = ReferenceDataService(reference_repo)
    change_queue = ChangeQueue(changes_repo, max_attempts=max_attempts)
    record_store = RecordStore(conn, attendance_repo, change_queue, reference_service)
    sync_manager = SyncManager(
        conn,
        remote,
        change_queue,
        watermarks_repo,
        handlers=[
            ReferenceSyncHandler(ENTITY_OFFICES, reference_repo, attendance_repo),
            ReferenceSyncHandler(ENTITY_LEVELS, reference_repo, attendance_repo),
            ReferenceSyncHandler(ENTITY_STUDENTS, reference_repo, attendance_repo),
            AttendanceSyncHandler(attendance_repo, change_queue),
        ],
    )

    return Container(
        conn=conn,
        reference_repo=reference_repo,
        attendance_repo=attendance_repo,
        changes_repo=changes_repo,
        watermarks_repo=watermarks_repo,
        remote=remote,
        reference_service=reference_service,
        change_queue=change_queue,
        record_store=record_store,
        sync_manager=sync_manager,
        connectivity=ConnectivityMonitor(),
    )
