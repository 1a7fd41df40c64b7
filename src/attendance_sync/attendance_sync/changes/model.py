from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.enums import OperationType


@dataclass(frozen=True)
class ChangeQueueEntry:
    """One pending local mutation, replayable against the remote as-is."""

    seq: int
    table_name: str
    entity_id: str
    operation: OperationType
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    attempts: int = 0
    poisoned: bool = False
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "table_name": self.table_name,
            "entity_id": self.entity_id,
            "operation": self.operation.value,
            "payload": self.payload,
            "created_at": self.created_at,
            "attempts": self.attempts,
            "poisoned": self.poisoned,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class NewChange:
    table_name: str
    entity_id: str
    operation: OperationType
    payload: Dict[str, Any]
    created_at: str
