from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_sync.attendance_sync.common.datetime_utils import now_iso
from src.attendance_sync.attendance_sync.database.bootstrap import apply_schema
from src.attendance_sync.attendance_sync.database.connection import DBConfig, DatabaseConnection
from src.attendance_sync.attendance_sync.reference.model import Level, Office, Student
from src.attendance_sync.attendance_sync.reference.sql_reference_repository import SQLReferenceRepository

# Demo roster for working offline before the first reference sync.
OFFICES = [Office("office-north", "North Office"), Office("office-south", "South Office")]
LEVELS = [Level("level-1", "Level 1"), Level("level-2", "Level 2")]
STUDENTS = [
    ("student-01", "Alice Tran", "office-north", "level-1"),
    ("student-02", "Bao Nguyen", "office-north", "level-1"),
    ("student-03", "Chi Le", "office-north", "level-2"),
    ("student-04", "Dung Pham", "office-south", "level-1"),
]


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    conn = DatabaseConnection(DBConfig(url=str(settings.LOCAL_DB_URL)))
    apply_schema(conn)

    stamp = now_iso()
    repo = SQLReferenceRepository(conn)
    offices = repo.upsert_offices(Office(o.uuid, o.name, stamp) for o in OFFICES)
    levels = repo.upsert_levels(Level(lv.uuid, lv.name, stamp) for lv in LEVELS)
    students = repo.upsert_students(
        Student(uuid=uuid, name=name, office_uuid=office, level_uuid=level, updated_at=stamp)
        for uuid, name, office, level in STUDENTS
    )

    print(f"OK: Seeded {offices} offices, {levels} levels, {students} students -> {conn.url}")
    conn.dispose()


if __name__ == "__main__":
    main()
