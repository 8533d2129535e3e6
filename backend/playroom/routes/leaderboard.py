from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("leaderboard", __name__)


@bp.get("/<game>/leaderboard")
def get_leaderboard(game: str):
    manager = current_app.extensions["playroom"].get(game)
    if manager is None:
        return jsonify({"error": "unknown_game"}), 404
    return jsonify({"game": game, "leaderboard": manager.get_leaderboard()})
