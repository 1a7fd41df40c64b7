from __future__ import annotations

from src.attendance_sync.attendance_sync.core.constants import ATTENDANCE_TABLE
from src.attendance_sync.attendance_sync.sync.connectivity import AutoSync, ConnectivityMonitor


def test_listeners_hear_transitions_only():
    monitor = ConnectivityMonitor()
    heard = []
    monitor.subscribe(heard.append)

    assert monitor.update(False) is True
    assert monitor.update(False) is False
    assert monitor.update(True) is True
    assert monitor.update(True) is False

    assert heard == [False, True]
    assert monitor.is_online


def test_unsubscribe_stops_notifications():
    monitor = ConnectivityMonitor(online=False)
    heard = []
    unsubscribe = monitor.subscribe(heard.append)

    unsubscribe()
    monitor.update(True)

    assert heard == []


def test_failing_listener_does_not_block_others():
    monitor = ConnectivityMonitor(online=False)
    heard = []

    def broken(_online):
        raise RuntimeError("listener bug")

    monitor.subscribe(broken)
    monitor.subscribe(heard.append)
    monitor.update(True)

    assert heard == [True]


def test_reconnect_syncs_configured_entity_types(container, store, remote):
    store.save_attendance("2026-01-10", "office-1", "level-1", [{"student_uuid": "s1", "status": "present"}])
    monitor = ConnectivityMonitor(online=False)
    AutoSync(container.sync_manager, ["offices", "attendance"]).attach(monitor)

    monitor.update(True)

    assert [entity for entity, _ in remote.pull_calls] == ["offices", "attendance"]
    assert container.change_queue.unsynced_count(ATTENDANCE_TABLE) == 0


def test_going_offline_does_not_sync(container, remote):
    monitor = ConnectivityMonitor(online=True)
    AutoSync(container.sync_manager, ["attendance"]).attach(monitor)

    monitor.update(False)

    assert remote.pull_calls == []
