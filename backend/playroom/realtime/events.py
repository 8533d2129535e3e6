"""Per-game action tables.

Each Socket.IO event ``<game>:<action>`` maps to exactly one room call. An
action not listed here has no handler.
"""

from __future__ import annotations

from typing import Any, Callable

Action = Callable[[Any, str, dict], dict]


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str(payload: dict, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value)
    return ""


DRAWGUESS_ACTIONS: dict[str, Action] = {
    "select_word": lambda room, pid, p: room.select_word(pid, _str(p, "word")),
    "guess": lambda room, pid, p: room.handle_guess(pid, _str(p, "text", "guess")),
    "stroke": lambda room, pid, p: room.add_stroke(pid, p.get("stroke")),
    "undo": lambda room, pid, p: room.undo(pid),
    "redo": lambda room, pid, p: room.redo(pid),
    "clear": lambda room, pid, p: room.clear_canvas(pid),
    "fill": lambda room, pid, p: room.fill(pid, p.get("x"), p.get("y"), _str(p, "color")),
    "promote": lambda room, pid, p: room.promote_spectator(pid, _str(p, "spectatorId")),
    "settings": lambda room, pid, p: room.update_settings(pid, _dict(p.get("settings"))),
}

TIMELINE_ACTIONS: dict[str, Action] = {
    "start_placing": lambda room, pid, p: room.start_placing(pid),
    "place": lambda room, pid, p: room.place_card(pid, p.get("position")),
    "steal": lambda room, pid, p: room.steal_card(pid, p.get("position")),
    "pass": lambda room, pid, p: room.pass_steal(pid),
}

SHED_ACTIONS: dict[str, Action] = {
    "play": lambda room, pid, p: room.play_card(pid, _str(p, "cardId"), p.get("chosenSuit")),
    "draw": lambda room, pid, p: room.draw_card(pid),
    "add_bot": lambda room, pid, p: room.add_bot(pid),
    "remove_bot": lambda room, pid, p: room.remove_bot(_str(p, "botId"), pid),
    "reset": lambda room, pid, p: room.reset_game(pid),
}

ACTIONS: dict[str, dict[str, Action]] = {
    "drawguess": DRAWGUESS_ACTIONS,
    "timeline": TIMELINE_ACTIONS,
    "shed": SHED_ACTIONS,
}

# Canvas traffic is relayed by the room itself; no state snapshot follows it.
QUIET_ACTIONS = frozenset({"stroke", "undo", "redo", "clear", "fill"})
