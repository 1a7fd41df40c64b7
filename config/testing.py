import os

SECRET_KEY = "test-secret"

DEBUG = False
TESTING = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")

LOCAL_DB_URL = os.getenv("LOCAL_DB_URL", "sqlite:///:memory:")
AUTO_INIT_DB = True

REMOTE_BASE_URL = ""
REMOTE_API_KEY = ""
REMOTE_TIMEOUT = 1.0

SYNC_MAX_ATTEMPTS = 3

# Sync runs inline in tests so results are observable right after the call.
AUTO_SYNC_ON_RECONNECT = True
AUTO_SYNC_ENTITY_TYPES = "offices,levels,students,attendance"
AUTO_SYNC_IN_BACKGROUND = False
