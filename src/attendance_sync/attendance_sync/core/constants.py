"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

ATTENDANCE_TABLE = "attendance_records"

ENTITY_ATTENDANCE = "attendance"
ENTITY_OFFICES = "offices"
ENTITY_LEVELS = "levels"
ENTITY_STUDENTS = "students"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_REMOTE_TIMEOUT = 10.0
DEFAULT_LOCAL_DB_URL = "sqlite:///attendance_local.db"

SYNC_ALREADY_RUNNING = "sync already in progress"
