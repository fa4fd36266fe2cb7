# callpipe/api/calls.py
from flask import Blueprint, request, jsonify, current_app
from ..errors import PersistenceError
from ..extensions import db
from ..services.store import Store

bp = Blueprint("calls", __name__)

DEFAULT_LIMIT = 6
MAX_LIMIT = 50


def clamp_limit(value, default=DEFAULT_LIMIT):
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return min(max(n, 1), MAX_LIMIT)


def clamp_offset(value):
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


@bp.get("/calls")
def list_calls():
    limit = clamp_limit(request.args.get("limit"))
    offset = clamp_offset(request.args.get("offset"))
    try:
        rows = Store(db.session).list_completed_calls(limit=limit, offset=offset)
    except PersistenceError:
        current_app.logger.exception("calls query failed")
        return jsonify({"ok": False, "error": "database_unavailable"}), 503
    return jsonify([c.to_dict() for c in rows])
