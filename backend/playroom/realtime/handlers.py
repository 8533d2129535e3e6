from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..core.room import BaseRoom, RoomManager
from ..games.drawguess.session import DrawGuessRoom
from ..hub import GameHub
from ..utils.validation import clean_avatar, clean_player_id, validate_name
from .events import ACTIONS, QUIET_ACTIONS, Action
from .sessions import SessionMap, player_channel

logger = logging.getLogger(__name__)


def _ack(result: dict[str, Any]) -> dict[str, Any]:
    return {"ok": bool(result.get("success")), **result}


def register_socketio_handlers(socketio: SocketIO, hub: GameHub, sessions: SessionMap | None = None) -> SessionMap:
    sessions = sessions or SessionMap()

    def _make_broadcaster(game: str):
        def _broadcast(room_id: str, event: str, payload: dict, exclude_id: str | None = None, to: str | None = None) -> None:
            message = {"game": game, "roomId": room_id, **payload}
            if to is not None:
                socketio.emit(event, message, to=player_channel(to))
                return
            skip_sid = sessions.sid_for(exclude_id) if exclude_id else None
            socketio.emit(event, message, to=room_id, skip_sid=skip_sid)

        return _broadcast

    def _push_state(game: str, room: BaseRoom) -> None:
        with room.lock:
            viewers = [pid for pid, p in room.players.items() if not getattr(p, "is_bot", False)]
            viewers.extend(room.spectators)
        for pid in viewers:
            socketio.emit(f"{game}:state", room.get_state(pid), to=player_channel(pid))

    def _error(game: str, code: str) -> dict[str, Any]:
        emit(f"{game}:error", {"error": code})
        return {"ok": False, "success": False, "error": code}

    def _enter(room: BaseRoom, player_id: str) -> None:
        sessions.bind(request.sid, player_id)
        join_room(room.id)
        join_room(player_channel(player_id))

    def _resolve(game: str, manager: RoomManager, payload: dict) -> tuple[BaseRoom | None, str | None, dict | None]:
        room_id = str(payload.get("roomId", "")).strip()
        if not room_id:
            return None, None, _error(game, "invalid_room")
        player_id = sessions.player_for(request.sid)
        if player_id is None:
            return None, None, _error(game, "not_joined")
        room = manager.get_room(room_id)
        if room is None:
            return None, None, _error(game, "room_not_found")
        if not room.has_player(player_id):
            return None, None, _error(game, "not_in_room")
        return room, player_id, None

    def _register_game(game: str, manager: RoomManager) -> None:
        manager.set_broadcast_callback(_make_broadcaster(game))

        def on_create(data):
            payload = data or {}
            player_id = clean_player_id(payload.get("playerId"))
            name = str(payload.get("name", "")).strip()
            if not player_id or not validate_name(name):
                return _error(game, "invalid_payload")

            settings = payload.get("settings")
            room = manager.create_room(
                str(payload.get("roomName", "")).strip()[:40],
                player_id,
                name,
                clean_avatar(payload.get("avatar")),
                settings if isinstance(settings, dict) else {},
            )
            _enter(room, player_id)
            logger.info("%s room %s created by %s", game, room.id, name)
            _push_state(game, room)
            return {"ok": True, "success": True, "roomId": room.id, "state": room.get_state(player_id)}

        def on_join(data):
            payload = data or {}
            room_id = str(payload.get("roomId", "")).strip()
            player_id = clean_player_id(payload.get("playerId"))
            name = str(payload.get("name", "")).strip()
            if not room_id or not player_id or not validate_name(name):
                return _error(game, "invalid_payload")

            room = manager.get_room(room_id)
            if room is None:
                return _error(game, "room_not_found")

            result = room.add_player(player_id, name, clean_avatar(payload.get("avatar")))
            if not result["success"]:
                emit(f"{game}:error", {"error": result["error"]})
                return _ack(result)

            _enter(room, player_id)
            # Sync history to the joining client for reconnects / late joiners.
            if isinstance(room, DrawGuessRoom):
                emit("draw:sync", {"game": game, "roomId": room.id, **room.get_draw_state()}, to=request.sid)
            _push_state(game, room)
            return {**_ack(result), "roomId": room.id, "state": room.get_state(player_id)}

        def on_leave(data):
            room, player_id, error = _resolve(game, manager, data or {})
            if error:
                return error
            result = room.remove_player(player_id)
            leave_room(room.id)
            _push_state(game, room)
            return _ack(result)

        def on_start(data):
            room, player_id, error = _resolve(game, manager, data or {})
            if error:
                return error
            result = room.start_game(player_id)
            if not result["success"]:
                emit(f"{game}:error", {"error": result["error"]})
            _push_state(game, room)
            return _ack(result)

        def on_sync(data):
            room, player_id, error = _resolve(game, manager, data or {})
            if error:
                return error
            return {"ok": True, "success": True, "state": room.get_state(player_id)}

        socketio.on_event(f"{game}:create", on_create)
        socketio.on_event(f"{game}:join", on_join)
        socketio.on_event(f"{game}:leave", on_leave)
        socketio.on_event(f"{game}:start", on_start)
        socketio.on_event(f"{game}:sync", on_sync)

        for action, call in ACTIONS[game].items():
            socketio.on_event(f"{game}:{action}", _make_action_handler(game, manager, action, call))

    def _make_action_handler(game: str, manager: RoomManager, action: str, call: Action):
        def on_action(data):
            payload = data or {}
            room, player_id, error = _resolve(game, manager, payload)
            if error:
                return error

            result = call(room, player_id, payload)
            if not result["success"]:
                emit(f"{game}:error", {"error": result["error"], "action": action})
                return _ack(result)

            if game == "drawguess" and action == "guess" and not result.get("correct") and not result.get("close"):
                player = room.players.get(player_id)
                socketio.emit(
                    "chat:message",
                    {
                        "game": game,
                        "roomId": room.id,
                        "from": player_id,
                        "name": player.name if player else "",
                        "text": str(payload.get("text", payload.get("guess", ""))),
                    },
                    to=room.id,
                )

            if action not in QUIET_ACTIONS:
                _push_state(game, room)
            return _ack(result)

        on_action.__name__ = f"{game}_{action}"
        return on_action

    for game, manager in hub.games.items():
        _register_game(game, manager)

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        player_id = sessions.unbind(request.sid)
        if player_id is None:
            return
        # Another tab of the same player keeps the seat.
        if sessions.sid_for(player_id) is not None:
            return
        for game, manager in hub.games.items():
            for room in manager.find_rooms_for(player_id):
                room.disconnect_player(player_id)
                _push_state(game, room)

    return sessions
