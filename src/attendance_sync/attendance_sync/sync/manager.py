from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from ..changes.service import ChangeQueue
from ..common.datetime_utils import now_iso, parse_iso_datetime, to_iso
from ..core.constants import SYNC_ALREADY_RUNNING
from ..core.enums import PushOutcome, SyncState
from ..core.exceptions import TransientSyncError
from ..database.base import db_transaction
from ..database.connection import DatabaseConnection
from .handlers import SyncHandler
from .model import MergeStats, SyncOutcome, SyncStatus
from .remote import RemoteGateway
from .repository import WatermarkRepository

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    state: SyncState = SyncState.IDLE
    last_outcome: Optional[SyncOutcome] = None
    last_finished_at: Optional[str] = None


class SyncManager:
    """Runs push-then-pull sync for one entity type at a time.

    Business rules:
    - At most one run per entity type; a concurrent call returns at once
      with a failed outcome and does not touch the queue.
    - Queue entries are pushed strictly oldest first. The first transient
      failure ends the run: nothing later is pushed and nothing is pulled.
    - The pull watermark only moves after a fully merged pull, inside the
      same transaction as the merge, and never past a deferred remote
      record, so the next pull returns it again.
    """

    def __init__(
        self,
        conn_factory: DatabaseConnection,
        remote: RemoteGateway,
        changes: ChangeQueue,
        watermarks: WatermarkRepository,
        handlers: Iterable[SyncHandler] = (),
    ):
        self._conn_factory = conn_factory
        self._remote = remote
        self._changes = changes
        self._watermarks = watermarks
        self._handlers: Dict[str, SyncHandler] = {}
        self._slots: Dict[str, _Slot] = {}
        self._slots_lock = threading.Lock()
        for handler in handlers:
            self.register(handler)

    def register(self, handler: SyncHandler) -> None:
        self._handlers[handler.entity_type] = handler

    def entity_types(self) -> List[str]:
        return list(self._handlers)

    def _slot(self, entity_type: str) -> _Slot:
        with self._slots_lock:
            slot = self._slots.get(entity_type)
            if slot is None:
                slot = self._slots[entity_type] = _Slot()
            return slot

    def state(self, entity_type: str) -> SyncState:
        return self._slot(entity_type).state

    def last_outcome(self, entity_type: str) -> Optional[SyncOutcome]:
        return self._slot(entity_type).last_outcome

    def status(self, entity_type: str) -> SyncStatus:
        handler = self.handler(entity_type)
        slot = self._slot(entity_type)
        unsynced = poisoned = 0
        if handler.table_name:
            unsynced = self._changes.unsynced_count(handler.table_name)
            poisoned = len(self._changes.poisoned_entries(handler.table_name))
        return SyncStatus(
            entity_type=entity_type,
            state=slot.state,
            last_outcome=slot.last_outcome,
            last_finished_at=slot.last_finished_at,
            last_pulled_at=self._watermarks.get(entity_type),
            unsynced=unsynced,
            poisoned=poisoned,
        )

    def handler(self, entity_type: str) -> SyncHandler:
        handler = self._handlers.get(entity_type)
        if handler is None:
            raise KeyError(entity_type)
        return handler

    def sync_entity(self, entity_type: str) -> SyncOutcome:
        handler = self._handlers.get(entity_type)
        if handler is None:
            return SyncOutcome(False, f"unknown entity type: {entity_type}", entity_type)

        slot = self._slot(entity_type)
        if not slot.lock.acquire(blocking=False):
            logger.info("Sync of %s skipped: already running", entity_type)
            return SyncOutcome(False, SYNC_ALREADY_RUNNING, entity_type)

        try:
            slot.state = SyncState.RUNNING
            logger.info("Sync of %s started", entity_type)
            try:
                outcome = self._run(handler)
            except Exception as exc:
                logger.exception("Sync of %s failed", entity_type)
                outcome = SyncOutcome(False, f"Sync of {entity_type} failed: {exc}", entity_type)

            slot.state = SyncState.SUCCEEDED if outcome.success else SyncState.FAILED
            slot.last_outcome = outcome
            slot.last_finished_at = now_iso()
            log = logger.info if outcome.success else logger.warning
            log("Sync of %s %s: %s", entity_type, slot.state.value, outcome.message)
            return outcome
        finally:
            slot.state = SyncState.IDLE
            slot.lock.release()

    def _run(self, handler: SyncHandler) -> SyncOutcome:
        entity_type = handler.entity_type
        notices: List[str] = []
        pushed = conflicts = held_back = 0

        if handler.table_name:
            entries, held_back = self._changes.pushable_changes(handler.table_name)
            resolved: set[str] = set()
            for entry in entries:
                if entry.entity_id in resolved or self._changes.get(entry.seq) is None:
                    # Dropped meanwhile: by a conflict above or by a local purge.
                    continue

                result = self._remote.push(entity_type, entry)
                if result.outcome == PushOutcome.ACKNOWLEDGED:
                    with db_transaction(self._conn_factory) as conn:
                        handler.on_acknowledged(entry, result, conn=conn)
                    pushed += 1
                elif result.outcome == PushOutcome.CONFLICT:
                    with db_transaction(self._conn_factory) as conn:
                        conflict = handler.on_conflict(entry, result, conn=conn)
                    notices.append(str(conflict))
                    resolved.add(entry.entity_id)
                    conflicts += 1
                else:
                    self._changes.increment_attempt(entry.seq, error=result.message)
                    remaining = self._changes.unsynced_count(handler.table_name)
                    return SyncOutcome(
                        False,
                        f"Sync of {entity_type} stopped: {result.message}. "
                        f"{pushed} change(s) pushed, {remaining} still queued.",
                        entity_type,
                        pushed=pushed,
                        conflicts=conflicts,
                        held_back=held_back,
                        notices=tuple(notices),
                    )

        watermark = self._watermarks.get(entity_type)
        started = now_iso()
        try:
            pull = self._remote.pull(entity_type, watermark)
        except TransientSyncError as exc:
            return SyncOutcome(
                False,
                f"Sync of {entity_type} pushed {pushed} change(s) but the pull failed: {exc}",
                entity_type,
                pushed=pushed,
                conflicts=conflicts,
                held_back=held_back,
                notices=tuple(notices),
            )

        with db_transaction(self._conn_factory) as conn:
            stats = handler.merge(pull.records, conn=conn)
            next_watermark = self._next_watermark(pull.server_time or started, stats, watermark)
            if next_watermark is not None:
                self._watermarks.set(entity_type, next_watermark, conn=conn)

        parts = [f"{pushed} pushed", f"{stats.pulled} pulled"]
        if conflicts:
            parts.append(f"{conflicts} local change(s) overridden by remote")
        if stats.deferred:
            parts.append(f"{stats.deferred} remote change(s) deferred")
        if held_back:
            parts.append(f"{held_back} change(s) waiting on a failed entry")
        return SyncOutcome(
            True,
            f"Synced {entity_type}: " + ", ".join(parts),
            entity_type,
            pushed=pushed,
            conflicts=conflicts,
            pulled=stats.pulled,
            deferred=stats.deferred,
            held_back=held_back,
            notices=tuple(notices),
        )

    @staticmethod
    def _next_watermark(candidate: str, stats: MergeStats, previous: Optional[str]) -> Optional[str]:
        if not stats.deferred:
            return candidate
        if not stats.oldest_deferred:
            # Undated deferral: keep pulling from where this run started.
            return previous
        just_before = to_iso(parse_iso_datetime(stats.oldest_deferred) - timedelta(microseconds=1))
        return min(candidate, just_before, key=parse_iso_datetime)
