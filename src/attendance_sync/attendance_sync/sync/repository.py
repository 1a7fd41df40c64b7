from __future__ import annotations

from typing import Optional, Protocol


class WatermarkRepository(Protocol):
    """Per entity type: timestamp of the last successful pull."""

    def get(self, entity_type: str, *, conn=None) -> Optional[str]:
        raise NotImplementedError

    def set(self, entity_type: str, value: str, *, conn=None) -> None:
        raise NotImplementedError
