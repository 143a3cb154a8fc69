# routes/sync_routes.py
from bson.errors import BSONError
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required
from pymongo.errors import PyMongoError

from database import get_user_store
from models.sync_model import (
    SnapshotNotFound, get_snapshot_history, get_sync_state, push_data, rollback_to
)
from utils.validation import PayloadError, validate_payload

sync_bp = Blueprint("sync", __name__)

# Connectivity / serialization problems from the document store, and
# RuntimeError from any other store backend
STORE_ERRORS = (PyMongoError, BSONError, RuntimeError)


def _error(message: str, status: int, diagnostic=None, **extra):
    body = {"error": message}
    if diagnostic:
        body["message"] = diagnostic
    body.update(extra)
    return jsonify(body), status


def _profile():
    claims = get_jwt()
    return {"name": claims.get("name"), "image": claims.get("image")}


@sync_bp.get("/api/sync")
@jwt_required()
def fetch_sync():
    email = get_jwt_identity()
    try:
        state = get_sync_state(get_user_store(), email)
    except STORE_ERRORS as e:
        current_app.logger.error("Failed to fetch data for %s: %s", email, e)
        return _error("Failed to fetch data", 500, str(e))
    return jsonify(state), 200


@sync_bp.get("/api/sync/snapshots")
@jwt_required()
def list_snapshots():
    email = get_jwt_identity()
    try:
        history = get_snapshot_history(get_user_store(), email)
    except STORE_ERRORS as e:
        current_app.logger.error("Failed to list snapshots for %s: %s", email, e)
        return _error("Failed to fetch data", 500, str(e))
    return jsonify({"snapshots": history}), 200


@sync_bp.post("/api/sync")
@jwt_required()
def save_sync():
    email = get_jwt_identity()
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error("Invalid data", 400, "request body must be a JSON object")

    # rollbackTo and data are mutually exclusive, rollback takes precedence
    if body.get("rollbackTo") is not None:
        return _rollback(email, body["rollbackTo"])

    raw = body.get("data")
    if raw is None:
        return _error("Invalid data", 400, "missing data")
    try:
        data = validate_payload(raw)
    except PayloadError as e:
        return _error("Invalid data", 400, str(e), details=e.details)

    try:
        last_sync = push_data(
            get_user_store(), email, _profile(), data, current_app.config["SNAPSHOT_LIMIT"]
        )
    except STORE_ERRORS as e:
        current_app.logger.error("Failed to save data for %s: %s", email, e)
        return _error("Failed to save data", 500, str(e))

    current_app.logger.info("Saved data for %s at %s", email, last_sync)
    return jsonify({"success": True, "lastSync": last_sync}), 200


def _rollback(email, saved_at):
    try:
        restored = rollback_to(get_user_store(), email, saved_at)
    except SnapshotNotFound:
        return _error("Snapshot not found", 404)
    except STORE_ERRORS as e:
        current_app.logger.error("Failed to restore snapshot for %s: %s", email, e)
        return _error("Failed to restore snapshot", 500, str(e))

    current_app.logger.info("Restored snapshot %s for %s", saved_at, email)
    return jsonify({"success": True, **restored}), 200
