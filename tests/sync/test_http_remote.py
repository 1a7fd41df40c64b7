from __future__ import annotations

import pytest
import requests

from src.attendance_sync.attendance_sync.changes.model import ChangeQueueEntry
from src.attendance_sync.attendance_sync.core.enums import OperationType, PushOutcome
from src.attendance_sync.attendance_sync.core.exceptions import TransientSyncError
from src.attendance_sync.attendance_sync.sync.remote import HttpRemoteGateway


class StubResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _answer(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)


ENTRY = ChangeQueueEntry(
    seq=7,
    table_name="attendance_records",
    entity_id="r1",
    operation=OperationType.CREATE,
    payload={"uuid": "r1", "date": "2026-01-10"},
    created_at="2026-01-10T08:00:00+00:00",
)


def _gateway(session):
    return HttpRemoteGateway("https://remote.example/api/", api_key="k-123", timeout=3, session=session)


def test_push_sends_entry_and_reads_acknowledgment():
    session = StubSession(StubResponse(201, {"record": {"uuid": "r1", "updated_at": "2026-01-10T08:00:05+00:00"}}))

    result = _gateway(session).push("attendance", ENTRY)

    assert result.outcome == PushOutcome.ACKNOWLEDGED
    assert result.server_updated_at == "2026-01-10T08:00:05+00:00"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://remote.example/api/sync/attendance")
    assert kwargs["json"]["operation"] == "create"
    assert kwargs["json"]["client_sequence"] == 7
    assert kwargs["headers"]["Authorization"] == "Bearer k-123"
    assert kwargs["timeout"] == 3.0


def test_push_409_is_a_conflict_with_the_server_version():
    body = {"record": {"uuid": "r9", "updated_at": "2026-01-11T00:00:00+00:00"}, "deleted": False}
    result = _gateway(StubSession(StubResponse(409, body))).push("attendance", ENTRY)

    assert result.outcome == PushOutcome.CONFLICT
    assert result.server_record["uuid"] == "r9"
    assert result.server_updated_at == "2026-01-11T00:00:00+00:00"
    assert not result.deleted


@pytest.mark.parametrize("status", [408, 429, 500, 503, 422])
def test_push_failures_are_transient(status):
    result = _gateway(StubSession(StubResponse(status))).push("attendance", ENTRY)

    assert result.outcome == PushOutcome.TRANSIENT


def test_push_network_error_is_transient():
    session = StubSession(error=requests.ConnectionError("offline"))

    result = _gateway(session).push("attendance", ENTRY)

    assert result.outcome == PushOutcome.TRANSIENT
    assert "ConnectionError" in result.message


def test_pull_passes_watermark_and_returns_records():
    session = StubSession(StubResponse(200, {"records": [{"uuid": "a"}], "server_time": "2026-01-12T00:00:00+00:00"}))

    result = _gateway(session).pull("offices", "2026-01-01T00:00:00+00:00")

    assert result.records == [{"uuid": "a"}]
    assert result.server_time == "2026-01-12T00:00:00+00:00"
    _, url, kwargs = session.calls[0]
    assert url == "https://remote.example/api/sync/offices"
    assert kwargs["params"] == {"since": "2026-01-01T00:00:00+00:00"}


def test_first_pull_has_no_since_parameter():
    session = StubSession(StubResponse(200, {"records": []}))

    _gateway(session).pull("offices", None)

    assert session.calls[0][2]["params"] == {}


@pytest.mark.parametrize(
    "session",
    [
        StubSession(error=requests.Timeout("slow")),
        StubSession(StubResponse(502)),
        StubSession(StubResponse(200)),
    ],
)
def test_pull_failures_raise_transient(session):
    with pytest.raises(TransientSyncError):
        _gateway(session).pull("attendance", None)


def test_unconfigured_remote_never_calls_out():
    session = StubSession(StubResponse(200, {}))
    gateway = HttpRemoteGateway("", session=session)

    assert gateway.push("attendance", ENTRY).outcome == PushOutcome.TRANSIENT
    with pytest.raises(TransientSyncError):
        gateway.pull("attendance", None)
    assert session.calls == []
