from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from .match import get_session

bp = Blueprint("admin", __name__)


def _authorized() -> bool:
    token = current_app.config.get("ADMIN_TOKEN", "")
    if not token:
        return False
    return request.headers.get("X-Admin-Token", "") == token


@bp.get("/__admin__/match")
def admin_match():
    if not _authorized():
        return jsonify({"error": "unauthorized"}), 401

    session = get_session()
    payload = session.match.snapshot(reveal_word=True)
    payload["connections"] = [
        {"peer": c.peer, "name": c.name, "active": c.active} for c in session.connections()
    ]
    return jsonify(payload)
