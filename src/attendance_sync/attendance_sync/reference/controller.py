from __future__ import annotations

from dataclasses import asdict

from flask import Flask, jsonify, request

from ..common.http import error_response
from ..container import Container
from ..core.exceptions import DomainError


def register(app: Flask, container: Container) -> None:
    reference = container.reference_service

    @app.route("/api/offices", methods=["GET"], endpoint="api_offices")
    def api_offices():
        try:
            return jsonify([asdict(o) for o in reference.get_local_offices()])
        except DomainError as e:
            return error_response(e)

    @app.route("/api/levels", methods=["GET"], endpoint="api_levels")
    def api_levels():
        try:
            return jsonify([asdict(lv) for lv in reference.get_local_levels()])
        except DomainError as e:
            return error_response(e)

    @app.route("/api/students", methods=["GET"], endpoint="api_students")
    def api_students():
        office = (request.args.get("office") or "").strip()
        level = (request.args.get("level") or "").strip()
        if not office or not level:
            return jsonify({"success": False, "message": "office and level are required"}), 400
        try:
            students = reference.get_students_by_office_and_level(office, level)
        except DomainError as e:
            return error_response(e)
        return jsonify([asdict(s) for s in students])
