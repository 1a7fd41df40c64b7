from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..core.enums import SyncState


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one sync run for one entity type."""

    success: bool
    message: str
    entity_type: str = ""
    pushed: int = 0
    conflicts: int = 0
    pulled: int = 0
    deferred: int = 0
    held_back: int = 0
    notices: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "entity_type": self.entity_type,
            "pushed": self.pushed,
            "conflicts": self.conflicts,
            "pulled": self.pulled,
            "deferred": self.deferred,
            "held_back": self.held_back,
            "notices": list(self.notices),
        }


@dataclass(frozen=True)
class MergeStats:
    applied: int = 0
    purged: int = 0
    deferred: int = 0
    # updated_at of the oldest deferred remote record; None when nothing was deferred
    # or a deferred record carried no timestamp.
    oldest_deferred: Optional[str] = None

    @property
    def pulled(self) -> int:
        return self.applied + self.purged


@dataclass(frozen=True)
class SyncStatus:
    """Read-model for ``GET /api/sync/<entity_type>/status``."""

    entity_type: str
    state: SyncState
    last_outcome: Optional[SyncOutcome] = None
    last_finished_at: Optional[str] = None
    last_pulled_at: Optional[str] = None
    unsynced: int = 0
    poisoned: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "state": self.state.value,
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
            "last_finished_at": self.last_finished_at,
            "last_pulled_at": self.last_pulled_at,
            "unsynced": self.unsynced,
            "poisoned": self.poisoned,
        }
