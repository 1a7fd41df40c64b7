from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from ..common.http import error_response, json_body
from ..container import Container
from ..core.constants import ENTITY_ATTENDANCE
from ..core.exceptions import DomainError, ValidationError

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    store = container.record_store

    def sync_after_mutation() -> Optional[Dict[str, Any]]:
        # Best effort: the local write already succeeded whatever happens here.
        if not container.connectivity.is_online:
            return None
        outcome = container.sync_manager.sync_entity(ENTITY_ATTENDANCE)
        if not outcome.success:
            logger.info("Post-mutation sync did not complete: %s", outcome.message)
        return outcome.to_dict()

    def save(existing_id: Optional[str]):
        data = json_body()
        try:
            students = data.get("students")
            if students is not None and not isinstance(students, list):
                raise ValidationError("students must be a list")
            record_id = store.save_attendance(
                date=data.get("date"),
                office_id=data.get("office_uuid"),
                level_id=data.get("level_uuid"),
                student_statuses=students or [],
                existing_id=existing_id,
            )
        except DomainError as e:
            return error_response(e)

        record = store.get_attendance_record_by_uuid(record_id)
        return jsonify({
            "success": True,
            "uuid": record_id,
            "record": record.to_dict() if record else None,
            "sync": sync_after_mutation(),
        }), (201 if existing_id is None else 200)

    @app.route("/api/attendance", methods=["GET"], endpoint="api_attendance_list")
    def api_attendance_list():
        try:
            records = store.get_all_attendance_records(request.args.get("q"))
        except DomainError as e:
            return error_response(e)
        return jsonify([r.to_dict() for r in records])

    @app.route("/api/attendance", methods=["POST"], endpoint="api_attendance_save")
    def api_attendance_save():
        return save(json_body().get("uuid") or None)

    @app.route("/api/attendance/form-roster", methods=["GET"], endpoint="api_attendance_form_roster")
    def api_attendance_form_roster():
        office = (request.args.get("office") or "").strip()
        level = (request.args.get("level") or "").strip()
        if not office or not level:
            return jsonify({"success": False, "message": "office and level are required"}), 400
        try:
            lines = store.get_form_roster(office, level, request.args.get("record") or None)
        except DomainError as e:
            return error_response(e)
        return jsonify([line.to_dict() for line in lines])

    @app.route("/api/attendance/<record_id>", methods=["GET"], endpoint="api_attendance_get")
    def api_attendance_get(record_id: str):
        record = store.get_attendance_record_by_uuid(record_id)
        if not record:
            return jsonify({"success": False, "message": "Attendance record not found"}), 404
        return jsonify(record.to_dict())

    @app.route("/api/attendance/<record_id>", methods=["PUT"], endpoint="api_attendance_update")
    def api_attendance_update(record_id: str):
        return save(record_id)

    @app.route("/api/attendance/<record_id>", methods=["DELETE"], endpoint="api_attendance_delete")
    def api_attendance_delete(record_id: str):
        try:
            deleted = store.delete_attendance_record(record_id)
        except DomainError as e:
            return error_response(e)
        if not deleted:
            return jsonify({"success": False, "message": "Attendance record not found"}), 404
        return jsonify({"success": True, "sync": sync_after_mutation()})

    @app.route("/api/attendance/<record_id>/students", methods=["GET"], endpoint="api_attendance_students")
    def api_attendance_students(record_id: str):
        if not store.get_attendance_record_by_uuid(record_id):
            return jsonify({"success": False, "message": "Attendance record not found"}), 404
        return jsonify([e.to_dict() for e in store.get_student_attendance_for_record(record_id)])
