from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import build_container
from .database.bootstrap import apply_schema, list_tables
from .reference.controller import register as register_reference
from .sync.connectivity import AutoSync
from .sync.controller import register as register_sync
from .sync.remote import RemoteGateway

logger = logging.getLogger(__name__)


def create_app(*, remote: Optional[RemoteGateway] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db_url = str(getattr(settings, "LOCAL_DB_URL"))
    container = build_container(
        db_url=db_url,
        remote_config={
            "base_url": getattr(settings, "REMOTE_BASE_URL", ""),
            "api_key": getattr(settings, "REMOTE_API_KEY", ""),
            "timeout": getattr(settings, "REMOTE_TIMEOUT", 10.0),
        },
        max_attempts=int(getattr(settings, "SYNC_MAX_ATTEMPTS", 5)),
        remote=remote,
    )
    logger.info("settings=%s db=%s", settings_module, container.conn.url)

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(container.conn)
        logger.info("schema ready (tables=%d)", len(list_tables(container.conn)))

    if bool(getattr(settings, "AUTO_SYNC_ON_RECONNECT", False)):
        entity_types = [
            t.strip() for t in str(getattr(settings, "AUTO_SYNC_ENTITY_TYPES", "")).split(",") if t.strip()
        ]
        auto_sync = AutoSync(
            container.sync_manager,
            entity_types,
            background=bool(getattr(settings, "AUTO_SYNC_IN_BACKGROUND", True)),
        )
        auto_sync.attach(container.connectivity)

    app.extensions["attendance_sync"] = container

    register_reference(app, container)
    register_attendance(app, container)
    register_sync(app, container)

    return app
