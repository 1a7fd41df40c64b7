from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body
from ..container import Container
from ..core.constants import SYNC_ALREADY_RUNNING


def register(app: Flask, container: Container) -> None:
    queue = container.change_queue
    manager = container.sync_manager

    @app.route("/api/sync/<table>/unsynced", methods=["GET"], endpoint="api_sync_unsynced")
    def api_sync_unsynced(table: str):
        return jsonify({"table": table, "count": queue.unsynced_count(table)})

    @app.route("/api/sync/<table>/poisoned", methods=["GET"], endpoint="api_sync_poisoned")
    def api_sync_poisoned(table: str):
        return jsonify([e.to_dict() for e in queue.poisoned_entries(table)])

    @app.route("/api/sync/queue/<int:seq>/retry", methods=["POST"], endpoint="api_sync_retry")
    def api_sync_retry(seq: int):
        if not queue.retry_poisoned(seq):
            return jsonify({"success": False, "message": f"No poisoned change #{seq}"}), 404
        return jsonify({"success": True, "message": f"Change #{seq} will be retried on the next sync"})

    @app.route("/api/sync/<entity_type>", methods=["POST"], endpoint="api_sync_run")
    def api_sync_run(entity_type: str):
        if entity_type not in manager.entity_types():
            return jsonify({"success": False, "message": f"Unknown entity type: {entity_type}"}), 404
        outcome = manager.sync_entity(entity_type)
        if outcome.success:
            status = 200
        elif outcome.message == SYNC_ALREADY_RUNNING:
            status = 409
        else:
            status = 502
        return jsonify(outcome.to_dict()), status

    @app.route("/api/sync/<entity_type>/status", methods=["GET"], endpoint="api_sync_status")
    def api_sync_status(entity_type: str):
        if entity_type not in manager.entity_types():
            return jsonify({"success": False, "message": f"Unknown entity type: {entity_type}"}), 404
        return jsonify(manager.status(entity_type).to_dict())

    @app.route("/api/connectivity", methods=["GET"], endpoint="api_connectivity_get")
    def api_connectivity_get():
        return jsonify({"online": container.connectivity.is_online})

    @app.route("/api/connectivity", methods=["POST"], endpoint="api_connectivity_set")
    def api_connectivity_set():
        data = json_body()
        if not isinstance(data.get("online"), bool):
            return jsonify({"success": False, "message": "online must be true or false"}), 400
        changed = container.connectivity.update(data["online"])
        return jsonify({"success": True, "online": container.connectivity.is_online, "changed": changed})
