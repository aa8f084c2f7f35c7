# Overview: Flask API routes for offline sync; parses input and returns JSON responses.

# backend/possync/routes/sync.py
"""Pull/push sync API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..services import sync_metadata_service, sync_service
from ..validation import ValidationError


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.post("/pull")
@require_user
def pull_route():
    """
    Pull changes since the client's cursor.

    Body: {"since": ISO-8601 timestamp, optional}
    Returns items, customers and transactions changed after `since`
    (tombstones included) and the server_timestamp to use as the next cursor.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        result = sync_service.pull_changes(g.user_id, data.get("since"))
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.exception("Failed to pull changes")
        return jsonify({"error": "Failed to pull changes"}), 500


@sync_bp.post("/push")
@require_user
def push_route():
    """
    Push a batch of local changes.

    Body: {"items": [...], "customers": [...], "transactions": [...]}
    Partial success is normal: each group reports synced and conflicts.
    A 500 means nothing was stored and the whole batch may be retried.
    """
    try:
        data = request.get_json(silent=True)
        result = sync_service.push_changes(g.user_id, data)
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.exception("Failed to push changes")
        return jsonify({"error": "Failed to push changes"}), 500


@sync_bp.get("/status")
@require_user
def status_route():
    """Per-entity sync bookkeeping for the calling user."""
    try:
        rows = sync_metadata_service.list_for_user(g.user_id)
        return jsonify({"metadata": [row.to_dict() for row in rows]}), 200

    except Exception as e:
        current_app.logger.exception("Failed to load sync status")
        return jsonify({"error": "Failed to load sync status"}), 500
