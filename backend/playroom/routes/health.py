from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    hub = current_app.extensions["playroom"]
    return jsonify({"ok": True, "rooms": {name: len(manager.registry) for name, manager in hub.games.items()}})
