from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Office:
    uuid: str
    name: str
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class Level:
    uuid: str
    name: str
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class Student:
    """Roster member of one (office, level) pair."""

    uuid: str
    name: str
    office_uuid: str
    level_uuid: str
    office_name: Optional[str] = None
    level_name: Optional[str] = None
    updated_at: Optional[str] = None
