from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import Level, Office, Student


class ReferenceRepository(Protocol):
    """Read-mostly caches pulled from the remote; never queued for push."""

    def get_local_offices(self) -> Sequence[Office]:
        raise NotImplementedError

    def get_local_levels(self) -> Sequence[Level]:
        raise NotImplementedError

    def get_office(self, office_uuid: str, *, conn=None) -> Optional[Office]:
        raise NotImplementedError

    def get_level(self, level_uuid: str, *, conn=None) -> Optional[Level]:
        raise NotImplementedError

    def get_students_by_office_and_level(self, office_uuid: str, level_uuid: str, *, conn=None) -> Sequence[Student]:
        raise NotImplementedError

    def upsert_offices(self, offices: Iterable[Office], *, conn=None) -> int:
        raise NotImplementedError

    def upsert_levels(self, levels: Iterable[Level], *, conn=None) -> int:
        raise NotImplementedError

    def upsert_students(self, students: Iterable[Student], *, conn=None) -> int:
        raise NotImplementedError

    def delete(self, entity_type: str, uuids: Iterable[str], *, conn=None) -> int:
        raise NotImplementedError
