"""Example: record attendance offline, then sync (no Flask).

Controllers are thin; everything below is what they call.
"""

import importlib

from config import get_settings_module

from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.database.bootstrap import apply_schema


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(
        db_url=settings.LOCAL_DB_URL,
        remote_config={"base_url": settings.REMOTE_BASE_URL, "api_key": settings.REMOTE_API_KEY},
    )
    apply_schema(container.conn)

    offices = container.reference_service.get_local_offices()
    levels = container.reference_service.get_local_levels()
    if not offices or not levels:
        print("No reference data yet: run scripts/seed_db.py or sync offices/levels/students first.")
        return

    roster = container.record_store.get_form_roster(offices[0].uuid, levels[0].uuid)
    record_id = container.record_store.save_attendance(
        "2026-01-15",
        offices[0].uuid,
        levels[0].uuid,
        [{"student_uuid": line.student_uuid, "status": "present"} for line in roster],
    )
    print("saved", record_id, "unsynced:", container.record_store.get_unsynced_count())

    print(container.sync_manager.sync_entity("attendance").message)


if __name__ == "__main__":
    main()
