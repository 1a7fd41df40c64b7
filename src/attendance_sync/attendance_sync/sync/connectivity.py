from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence

from .manager import SyncManager
from .model import SyncOutcome

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class ConnectivityMonitor:
    """Holds the online/offline flag and notifies listeners on transitions.

    The platform (or the ``/api/connectivity`` endpoint) feeds it with
    ``update``; listeners only hear real changes, not repeats.
    """

    def __init__(self, online: Optional[bool] = None):
        self._online = online
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return bool(self._online)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, online: bool) -> bool:
        """Record the current state. Returns True when it changed."""

        online = bool(online)
        with self._lock:
            changed = self._online != online
            self._online = online
            listeners = list(self._listeners)

        if not changed:
            return False

        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in listeners:
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")
        return True


class AutoSync:
    """Syncs the configured entity types whenever connectivity returns."""

    def __init__(self, sync_manager: SyncManager, entity_types: Sequence[str], *, background: bool = False):
        self._sync_manager = sync_manager
        self._entity_types = list(entity_types)
        self._background = background

    def attach(self, monitor: ConnectivityMonitor) -> Callable[[], None]:
        return monitor.subscribe(self)

    def __call__(self, online: bool) -> None:
        if not online:
            return
        if self._background:
            threading.Thread(target=self.run_all, name="auto-sync", daemon=True).start()
        else:
            self.run_all()

    def run_all(self) -> List[SyncOutcome]:
        outcomes = []
        for entity_type in self._entity_types:
            outcome = self._sync_manager.sync_entity(entity_type)
            outcomes.append(outcome)
        logger.info(
            "Auto sync finished: %s",
            ", ".join(f"{o.entity_type}={'ok' if o.success else 'failed'}" for o in outcomes),
        )
        return outcomes
