from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ..core.constants import DEFAULT_MAX_ATTEMPTS
from .model import ChangeQueueEntry, NewChange
from .repository import ChangeQueueRepository

logger = logging.getLogger(__name__)


class ChangeQueue:
    """Use cases over the pending-change ledger.

    Business rules:
    - Entries are only removed on confirmed remote acknowledgment of that
      exact entry (or when the mutation they carry is discarded).
    - After ``max_attempts`` failed pushes an entry is poisoned: it is skipped
      by automatic sync until ``retry_poisoned`` is called.
    - Entries of one entity are replayed strictly in creation order, so an
      entity with a poisoned entry has its later entries held back too.
    """

    def __init__(self, changes: ChangeQueueRepository, *, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if int(max_attempts) < 1:
            raise ValueError("max_attempts must be >= 1")
        self._changes = changes
        self._max_attempts = int(max_attempts)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def append(self, change: NewChange, *, conn=None) -> int:
        seq = self._changes.append(change, conn=conn)
        logger.debug("Queued %s %s/%s as #%s", change.operation.value, change.table_name, change.entity_id, seq)
        return seq

    def get(self, seq: int, *, conn=None) -> Optional[ChangeQueueEntry]:
        return self._changes.get(seq, conn=conn)

    def get_unsynced_changes(self, table_name: str) -> Sequence[ChangeQueueEntry]:
        return self._changes.list_for_table(table_name)

    def unsynced_count(self, table_name: str) -> int:
        return self._changes.count(table_name)

    def poisoned_entries(self, table_name: str) -> List[ChangeQueueEntry]:
        return [e for e in self._changes.list_for_table(table_name) if e.poisoned]

    def pushable_changes(self, table_name: str) -> Tuple[List[ChangeQueueEntry], int]:
        """Unpoisoned entries, oldest first, minus those queued behind a poisoned entry.

        Returns (entries, held_back_count).
        """

        blocked: set[str] = set()
        pushable: List[ChangeQueueEntry] = []
        held_back = 0
        for entry in self._changes.list_for_table(table_name):
            if entry.poisoned:
                blocked.add(entry.entity_id)
                continue
            if entry.entity_id in blocked:
                held_back += 1
                continue
            pushable.append(entry)
        return pushable, held_back

    def pending_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> Sequence[ChangeQueueEntry]:
        return self._changes.list_for_entity(table_name, entity_id, conn=conn)

    def acknowledge(self, seq: int, *, conn=None) -> bool:
        removed = self._changes.delete(seq, conn=conn)
        if not removed:
            logger.debug("Acknowledge of #%s ignored: entry already gone", seq)
        return removed

    def discard_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> int:
        return self._changes.delete_for_entity(table_name, entity_id, conn=conn)

    def increment_attempt(self, seq: int, *, error: Optional[str] = None, conn=None) -> Optional[ChangeQueueEntry]:
        entry = self._changes.record_failure(seq, max_attempts=self._max_attempts, error=error, conn=conn)
        if entry and entry.poisoned:
            logger.warning(
                "Change #%s (%s %s/%s) poisoned after %s attempts: %s",
                entry.seq,
                entry.operation.value,
                entry.table_name,
                entry.entity_id,
                entry.attempts,
                error,
            )
        return entry

    def retry_poisoned(self, seq: int) -> bool:
        ok = self._changes.reset(seq)
        if ok:
            logger.info("Change #%s re-enabled for automatic sync", seq)
        return ok
