from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..utils.validation import clean_avatar, clean_player_id, validate_name

bp = Blueprint("rooms", __name__)


def _manager(game: str):
    return current_app.extensions["playroom"].get(game)


@bp.get("/<game>/rooms")
def list_rooms(game: str):
    manager = _manager(game)
    if manager is None:
        return jsonify({"error": "unknown_game"}), 404
    return jsonify({"rooms": [room.to_json() for room in manager.list_rooms()]})


@bp.post("/<game>/rooms")
def create_room(game: str):
    manager = _manager(game)
    if manager is None:
        return jsonify({"error": "unknown_game"}), 404

    payload = request.get_json(silent=True) or {}
    player_id = clean_player_id(payload.get("playerId"))
    name = str(payload.get("name", "")).strip()
    if not player_id or not validate_name(name):
        return jsonify({"error": "invalid_payload"}), 400

    settings = payload.get("settings")
    room = manager.create_room(
        str(payload.get("roomName", "")).strip()[:40],
        player_id,
        name,
        clean_avatar(payload.get("avatar")),
        settings if isinstance(settings, dict) else {},
    )
    return jsonify({"roomId": room.id, "room": room.get_state(player_id)}), 201


@bp.get("/<game>/rooms/<room_id>")
def get_room(game: str, room_id: str):
    manager = _manager(game)
    if manager is None:
        return jsonify({"error": "unknown_game"}), 404

    room = manager.get_room(room_id)
    if room is None:
        return jsonify({"error": "room_not_found"}), 404
    # Private views only go out over the socket bound to that player.
    return jsonify(room.get_state(None))
