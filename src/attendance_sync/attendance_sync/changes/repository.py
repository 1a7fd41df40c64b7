from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import ChangeQueueEntry, NewChange


class ChangeQueueRepository(Protocol):
    """Append-only ledger of pending mutations.

    Every method accepts an optional ``conn`` so writes can join the caller's
    transaction (record write + queue append are one unit).
    """

    def append(self, change: NewChange, *, conn=None) -> int:
        raise NotImplementedError

    def get(self, seq: int, *, conn=None) -> Optional[ChangeQueueEntry]:
        raise NotImplementedError

    def list_for_table(self, table_name: str, *, include_poisoned: bool = True, conn=None) -> Sequence[ChangeQueueEntry]:
        raise NotImplementedError

    def list_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> Sequence[ChangeQueueEntry]:
        raise NotImplementedError

    def count(self, table_name: str, *, conn=None) -> int:
        raise NotImplementedError

    def delete(self, seq: int, *, conn=None) -> bool:
        raise NotImplementedError

    def delete_for_entity(self, table_name: str, entity_id: str, *, conn=None) -> int:
        raise NotImplementedError

    def record_failure(self, seq: int, *, max_attempts: int, error: Optional[str] = None, conn=None) -> Optional[ChangeQueueEntry]:
        raise NotImplementedError

    def reset(self, seq: int, *, conn=None) -> bool:
        raise NotImplementedError
