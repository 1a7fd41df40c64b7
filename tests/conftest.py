from __future__ import annotations

import pytest

from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.database.bootstrap import apply_schema
from src.attendance_sync.attendance_sync.reference.model import Level, Office, Student
from src.attendance_sync.attendance_sync.sync.remote import PullResult, PushResult

SERVER_TIME = "2026-02-01T08:00:00.000000+00:00"


class FakeRemote:
    """In-memory stand-in for the remote system of record.

    Push answers are taken from ``push_results`` in order (a PushResult, or a
    callable receiving the entry); once empty, every push is acknowledged.
    Pull answers come from ``pull_responses`` per entity type: a PullResult,
    an exception to raise, or a callable receiving ``since``.
    """

    def __init__(self):
        self.pushed = []
        self.push_results = []
        self.pull_responses = {}
        self.pull_calls = []

    def push(self, entity_type, entry):
        self.pushed.append((entity_type, entry))
        if self.push_results:
            result = self.push_results.pop(0)
            return result(entry) if callable(result) else result
        return PushResult.acknowledged(server_updated_at=SERVER_TIME)

    def pull(self, entity_type, since):
        self.pull_calls.append((entity_type, since))
        response = self.pull_responses.get(entity_type, PullResult(records=[], server_time=SERVER_TIME))
        if isinstance(response, Exception):
            raise response
        return response(since) if callable(response) else response


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def container(tmp_path, remote):
    c = build_container(db_url=f"sqlite:///{tmp_path / 'local.db'}", remote=remote, max_attempts=3)
    apply_schema(c.conn)

    c.reference_repo.upsert_offices([Office("office-1", "Main Office"), Office("office-2", "Annex")])
    c.reference_repo.upsert_levels([Level("level-1", "Beginner"), Level("level-2", "Advanced")])
    c.reference_repo.upsert_students(
        [
            Student(uuid="s1", name="An", office_uuid="office-1", level_uuid="level-1"),
            Student(uuid="s2", name="Binh", office_uuid="office-1", level_uuid="level-1"),
            Student(uuid="s3", name="Cuong", office_uuid="office-1", level_uuid="level-1"),
            Student(uuid="s4", name="Dao", office_uuid="office-2", level_uuid="level-1"),
        ]
    )
    yield c
    c.conn.dispose()


@pytest.fixture
def store(container):
    return container.record_store


@pytest.fixture
def queue(container):
    return container.change_queue


@pytest.fixture
def manager(container):
    return container.sync_manager
