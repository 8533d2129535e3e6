from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Generic, TypeVar

from .registry import RoomRegistry
from .results import ok
from .scheduler import Scheduler, TimerHandle
from .stats import StatsStore

logger = logging.getLogger(__name__)

# (room_id, event, payload, exclude_id=None, to=None)
BroadcastCallback = Callable[..., None]


@dataclass
class Participant:
    id: str
    name: str
    avatar: str | None = None
    connected: bool = True
    is_spectator: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "connected": self.connected,
            "isSpectator": self.is_spectator,
        }


class BaseRoom:
    """State every game room shares.

    Public methods of subclasses take ``self.lock`` for their whole body.
    Timers go through :meth:`schedule`, which drops callbacks whose phase
    epoch is gone by the time they fire.
    """

    ended_states: tuple[str, ...] = ("ended",)

    def __init__(self, room_id: str, name: str, host_id: str, scheduler: Scheduler, stats: StatsStore | None = None) -> None:
        self.id = room_id
        self.name = name
        self.host_id = host_id
        self.state = "waiting"
        self.players: dict[str, Any] = {}
        self.spectators: dict[str, Any] = {}
        self.scheduler = scheduler
        self.stats = stats
        self.created_at = scheduler.now()
        self.lock = RLock()
        self.closed = False
        self._epoch = 0
        self._timers: dict[str, TimerHandle] = {}
        self._broadcast_callback: BroadcastCallback | None = None

    # -- broadcasting -------------------------------------------------------

    def set_broadcast_callback(self, callback: BroadcastCallback | None) -> None:
        self._broadcast_callback = callback

    def broadcast(self, event: str, payload: dict[str, Any], exclude_id: str | None = None) -> None:
        if self._broadcast_callback is None:
            return
        self._broadcast_callback(self.id, event, payload, exclude_id)

    def send_to(self, player_id: str, event: str, payload: dict[str, Any]) -> None:
        if self._broadcast_callback is None:
            return
        self._broadcast_callback(self.id, event, payload, None, player_id)

    # -- phases and timers --------------------------------------------------

    def _set_state(self, state: str) -> None:
        self.state = state
        self._epoch += 1

    def schedule(self, key: str, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        self.cancel(key)
        epoch = self._epoch

        def _fire() -> None:
            with self.lock:
                if self.closed or epoch != self._epoch:
                    logger.debug("room %s: stale timer %s ignored", self.id, key)
                    return
                callback(*args)

        self._timers[key] = self.scheduler.call_later(delay, _fire)

    def cancel(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def has_timer(self, key: str) -> bool:
        handle = self._timers.get(key)
        return handle is not None and handle.active

    def close(self) -> None:
        with self.lock:
            self.closed = True
            self.cancel_all()

    # -- membership ---------------------------------------------------------

    def has_player(self, player_id: str) -> bool:
        return player_id in self.players or player_id in self.spectators

    def is_empty(self) -> bool:
        return not self.players and not self.spectators

    def is_ended(self) -> bool:
        return self.state in self.ended_states

    def connected_players(self) -> list[Any]:
        return [p for p in self.players.values() if p.connected]

    def _reconnect(self, player_id: str, name: str, avatar: str | None) -> dict[str, Any] | None:
        existing = self.players.get(player_id)
        if existing is not None:
            existing.connected = True
            existing.name = name
            existing.avatar = avatar
            return ok(reconnected=True, asSpectator=False)

        spectator = self.spectators.get(player_id)
        if spectator is not None:
            spectator.connected = True
            spectator.name = name
            spectator.avatar = avatar
            return ok(reconnected=True, asSpectator=True)
        return None

    def _add_spectator(self, participant: Participant) -> dict[str, Any]:
        participant.is_spectator = True
        self.spectators[participant.id] = participant
        self.broadcast("room:spectatorJoined", {"spectator": participant.to_json()})
        return ok(asSpectator=True)

    def _remove_spectator(self, player_id: str) -> Participant | None:
        spectator = self.spectators.pop(player_id, None)
        if spectator is not None:
            self.broadcast("room:spectatorLeft", {"playerId": player_id, "name": spectator.name})
        return spectator

    def _promote_spectators(self, capacity: int) -> list[str]:
        promoted = []
        for spectator in list(self.spectators.values()):
            if len(self.players) >= capacity:
                break
            del self.spectators[spectator.id]
            spectator.is_spectator = False
            self.players[spectator.id] = spectator
            promoted.append(spectator.id)
        return promoted

    def _reassign_host(self, leaving_id: str) -> None:
        if leaving_id != self.host_id:
            return
        humans = [p for p in self.players.values() if p.id != leaving_id and not getattr(p, "is_bot", False)]
        # Connected seats first; a dropped seat may never come back.
        humans.sort(key=lambda p: not p.connected)
        if humans:
            self.host_id = humans[0].id
            self.broadcast("room:newHost", {"hostId": self.host_id})

    def spectator_list(self) -> list[dict[str, Any]]:
        return [s.to_json() for s in self.spectators.values()]


R = TypeVar("R", bound=BaseRoom)


class RoomManager(Generic[R]):
    """Per-game entry point: room lifecycle plus the game's leaderboard."""

    id_prefix = "room"

    def __init__(
        self,
        scheduler: Scheduler,
        stats: StatsStore,
        broadcast: BroadcastCallback | None = None,
        registry: RoomRegistry[R] | None = None,
        leaderboard_size: int = 20,
    ) -> None:
        self.scheduler = scheduler
        self.stats = stats
        self.broadcast = broadcast
        self.registry: RoomRegistry[R] = registry or RoomRegistry(self.id_prefix, scheduler)
        self.leaderboard_size = leaderboard_size

    def build_room(
        self,
        room_id: str,
        name: str,
        host_id: str,
        host_name: str,
        host_avatar: str | None,
        settings: dict[str, Any],
    ) -> R:
        raise NotImplementedError

    def create_room(
        self,
        name: str,
        host_id: str,
        host_name: str,
        host_avatar: str | None = None,
        settings: dict[str, Any] | None = None,
    ) -> R:
        room = self.registry.create(
            lambda room_id: self.build_room(room_id, name, host_id, host_name, host_avatar, dict(settings or {}))
        )
        room.set_broadcast_callback(self.broadcast)
        return room

    def get_room(self, room_id: str) -> R | None:
        return self.registry.get(room_id)

    def delete_room(self, room_id: str) -> bool:
        return self.registry.delete(room_id)

    def is_listed(self, room: R) -> bool:
        return not room.is_ended()

    def list_rooms(self, predicate: Callable[[R], bool] | None = None) -> list[R]:
        return self.registry.list(predicate or self.is_listed)

    def find_rooms_for(self, player_id: str) -> list[R]:
        return self.registry.list(lambda r: r.has_player(player_id))

    def set_broadcast_callback(self, callback: BroadcastCallback | None) -> None:
        self.broadcast = callback
        for room in self.registry.list():
            room.set_broadcast_callback(callback)

    def get_leaderboard(self) -> list[dict[str, Any]]:
        return self.stats.get_leaderboard(self.leaderboard_size)

    def shutdown(self) -> None:
        self.registry.stop_sweeper()
        for room in self.registry.list():
            room.close()
        self.stats.flush()
