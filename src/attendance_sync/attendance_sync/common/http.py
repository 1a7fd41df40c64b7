from __future__ import annotations

from typing import Any, Dict, Tuple

from flask import jsonify, request

from ..core.exceptions import (
    DomainError,
    DuplicateRecordError,
    NotFoundError,
    ReferenceDataError,
    StorageCorruptionError,
    StorageFullError,
)


def status_for(exc: DomainError) -> int:
    if isinstance(exc, DuplicateRecordError):
        return 409
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, StorageFullError):
        return 507
    if isinstance(exc, StorageCorruptionError):
        return 500
    if isinstance(exc, ReferenceDataError):
        return 503
    return 400


def error_response(exc: DomainError) -> Tuple[Any, int]:
    return jsonify({"success": False, "message": str(exc)}), status_for(exc)


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
