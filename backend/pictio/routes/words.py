from __future__ import annotations

from flask import Blueprint, jsonify

from .match import get_session

bp = Blueprint("words", __name__)


@bp.get("/lexicon")
def get_lexicon():
    match = get_session().match
    return jsonify(match.lexicon.stats(excluding=match.used_words))
