from __future__ import annotations

from threading import RLock


def player_channel(player_id: str) -> str:
    """Socket.IO room every connection of a player joins, for private sends."""
    return f"player:{player_id}"


class SessionMap:
    """Which player id a Socket.IO sid speaks for, and back."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._by_sid: dict[str, str] = {}
        self._by_player: dict[str, str] = {}

    def bind(self, sid: str, player_id: str) -> None:
        with self._lock:
            previous = self._by_sid.get(sid)
            if previous is not None and previous != player_id:
                self._by_player.pop(previous, None)
            self._by_sid[sid] = player_id
            self._by_player[player_id] = sid

    def player_for(self, sid: str) -> str | None:
        with self._lock:
            return self._by_sid.get(sid)

    def sid_for(self, player_id: str) -> str | None:
        with self._lock:
            return self._by_player.get(player_id)

    def unbind(self, sid: str) -> str | None:
        with self._lock:
            player_id = self._by_sid.pop(sid, None)
            if player_id is not None and self._by_player.get(player_id) == sid:
                del self._by_player[player_id]
            return player_id
