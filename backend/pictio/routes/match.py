from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("match", __name__)


def get_session():
    return current_app.extensions["pictio"]


@bp.get("/match")
def get_match():
    session = get_session()
    payload = session.match.snapshot()
    payload["connections"] = len(session.connections())
    return jsonify(payload)
