from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool


@dataclass
class DBConfig:
    url: str
    echo: bool = False
    busy_timeout_ms: int = 5000


class DatabaseConnection:
    """Engine factory for the on-device database.

    Note: One engine per process; connections are short-lived and scoped to a
    single transaction (see ``db_transaction``).
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._engine: Optional[Engine] = None

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def is_sqlite(self) -> bool:
        return self._config.url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        kwargs: dict = {"echo": self._config.echo, "future": True}
        if self.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self._config.url in {"sqlite://", "sqlite:///:memory:"}:
                # In-memory databases vanish with their connection; share one.
                kwargs["poolclass"] = StaticPool

        engine = create_engine(self._config.url, **kwargs)

        if self.is_sqlite:
            busy_timeout = int(self._config.busy_timeout_ms)

            @event.listens_for(engine, "connect")
            def _sqlite_pragmas(dbapi_conn, _record):
                cur = dbapi_conn.cursor()
                cur.execute("PRAGMA foreign_keys=ON")
                cur.execute(f"PRAGMA busy_timeout={busy_timeout}")
                cur.execute("PRAGMA journal_mode=WAL")
                cur.close()

        return engine

    def connect(self):
        return self.engine.connect()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
