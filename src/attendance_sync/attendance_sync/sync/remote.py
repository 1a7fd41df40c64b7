from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import requests

from ..changes.model import ChangeQueueEntry
from ..core.constants import DEFAULT_REMOTE_TIMEOUT
from ..core.enums import PushOutcome
from ..core.exceptions import TransientSyncError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 425, 429}


@dataclass(frozen=True)
class PushResult:
    outcome: PushOutcome
    server_record: Optional[Dict[str, Any]] = None
    server_updated_at: Optional[str] = None
    deleted: bool = False
    message: str = ""

    @classmethod
    def acknowledged(cls, *, server_record=None, server_updated_at=None) -> "PushResult":
        return cls(PushOutcome.ACKNOWLEDGED, server_record=server_record, server_updated_at=server_updated_at)

    @classmethod
    def conflict(cls, *, server_record=None, server_updated_at=None, deleted=False, message="") -> "PushResult":
        return cls(
            PushOutcome.CONFLICT,
            server_record=server_record,
            server_updated_at=server_updated_at,
            deleted=deleted,
            message=message or "remote has a newer version",
        )

    @classmethod
    def transient(cls, message: str) -> "PushResult":
        return cls(PushOutcome.TRANSIENT, message=message)


@dataclass(frozen=True)
class PullResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    server_time: Optional[str] = None


class RemoteGateway(Protocol):
    """Remote system of record.

    ``push`` never raises for network problems: it reports them as a
    TRANSIENT outcome. ``pull`` raises TransientSyncError.
    """

    def push(self, entity_type: str, entry: ChangeQueueEntry) -> PushResult:
        raise NotImplementedError

    def pull(self, entity_type: str, since: Optional[str]) -> PullResult:
        raise NotImplementedError


class HttpRemoteGateway(RemoteGateway):
    """JSON-over-HTTP client for the remote sync API.

    POST {base}/sync/<entity_type>   push one queued change
    GET  {base}/sync/<entity_type>   pull changes (``?since=<iso>``)
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_REMOTE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._base = (base_url or "").rstrip("/")
        self._api_key = api_key
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _url(self, entity_type: str) -> str:
        return f"{self._base}/sync/{entity_type}"

    @staticmethod
    def _json(resp) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def push(self, entity_type: str, entry: ChangeQueueEntry) -> PushResult:
        if not self._base:
            return PushResult.transient("remote URL is not configured")

        body = {
            "operation": entry.operation.value,
            "entity_id": entry.entity_id,
            "payload": entry.payload,
            "client_sequence": entry.seq,
            "queued_at": entry.created_at,
        }
        try:
            resp = self._session.post(self._url(entity_type), json=body, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Push #%s to %s failed: %s", entry.seq, entity_type, exc)
            return PushResult.transient(f"network error: {exc.__class__.__name__}")

        status = resp.status_code
        if 200 <= status < 300:
            data = self._json(resp)
            record = data.get("record")
            updated_at = data.get("updated_at") or (record or {}).get("updated_at")
            return PushResult.acknowledged(server_record=record, server_updated_at=updated_at)

        if status == 409:
            data = self._json(resp)
            record = data.get("record")
            return PushResult.conflict(
                server_record=record,
                server_updated_at=data.get("updated_at") or (record or {}).get("updated_at"),
                deleted=bool(data.get("deleted")),
                message=str(data.get("message") or ""),
            )

        if status >= 500 or status in _RETRYABLE_STATUS:
            return PushResult.transient(f"server unavailable ({status})")

        # Other 4xx: keep the entry so it ends up poisoned instead of silently dropped.
        return PushResult.transient(f"rejected by server ({status})")

    def pull(self, entity_type: str, since: Optional[str]) -> PullResult:
        if not self._base:
            raise TransientSyncError("remote URL is not configured")

        params = {"since": since} if since else {}
        try:
            resp = self._session.get(self._url(entity_type), params=params, headers=self._headers(), timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TransientSyncError(f"pull {entity_type} failed: {exc.__class__.__name__}") from exc

        if not isinstance(data, dict):
            raise TransientSyncError(f"pull {entity_type} failed: unexpected response body")
        return PullResult(records=list(data.get("records") or []), server_time=data.get("server_time"))
