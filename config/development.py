import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# On-device database. Any SQLAlchemy URL works; SQLite is the default.
LOCAL_DB_URL = os.getenv("LOCAL_DB_URL", "sqlite:///attendance_local.db")

# Apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Remote system of record
REMOTE_BASE_URL = os.getenv("REMOTE_BASE_URL", "http://localhost:8000/api")
REMOTE_API_KEY = os.getenv("REMOTE_API_KEY", "")
REMOTE_TIMEOUT = float(os.getenv("REMOTE_TIMEOUT", "10"))

# A queued change is poisoned after this many failed pushes
SYNC_MAX_ATTEMPTS = int(os.getenv("SYNC_MAX_ATTEMPTS", "5"))

AUTO_SYNC_ON_RECONNECT = bool(int(os.getenv("AUTO_SYNC_ON_RECONNECT", "1")))
AUTO_SYNC_ENTITY_TYPES = os.getenv("AUTO_SYNC_ENTITY_TYPES", "offices,levels,students,attendance")
AUTO_SYNC_IN_BACKGROUND = bool(int(os.getenv("AUTO_SYNC_IN_BACKGROUND", "1")))
