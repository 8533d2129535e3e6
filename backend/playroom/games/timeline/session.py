from __future__ import annotations

import logging
import random
from typing import Any

from ...core.content import Song, SongPool
from ...core.results import fail, ok
from ...core.room import BaseRoom, RoomManager
from ...core.scheduler import Scheduler
from ...core.turns import advance_turn
from .leaderboard import TimelineStats
from .models import (
    CARDS_TO_WIN,
    MIN_PLAYERS,
    RESET_DELAY_SEC,
    REVEAL_DELAY_SEC,
    Player,
    RoomSettings,
    TurnPhase,
)
from .rules import is_correct_placement

logger = logging.getLogger(__name__)


class TimelineRoom(BaseRoom):
    def __init__(
        self,
        room_id: str,
        name: str,
        host_id: str,
        scheduler: Scheduler,
        stats: TimelineStats | None,
        songs: SongPool,
        settings: RoomSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(room_id, name, host_id, scheduler, stats)
        self.settings = settings or RoomSettings()
        self.songs = songs
        self.rng = rng or random.Random()

        self.player_order: list[str] = []
        self.current_index = 0
        self.turn_phase: TurnPhase | None = None
        self.current_song: Song | None = None
        self.song_revealed = False
        self.used_songs: set[str] = set()
        self.steal_queue: list[str] = []
        self.stealer_index = 0
        self.winner_id: str | None = None
        self.end_reason: str | None = None

    # -- derived accessors --------------------------------------------------

    def current_player(self) -> Player | None:
        if not self.player_order:
            return None
        return self.players.get(self.player_order[self.current_index % len(self.player_order)])

    @property
    def current_stealer_id(self) -> str | None:
        if self.turn_phase != "stealing" or self.stealer_index >= len(self.steal_queue):
            return None
        return self.steal_queue[self.stealer_index]

    def _set_phase(self, phase: TurnPhase | None) -> None:
        self.turn_phase = phase
        self._epoch += 1

    # -- membership ---------------------------------------------------------

    def add_player(self, player_id: str, name: str, avatar: str | None = None) -> dict[str, Any]:
        with self.lock:
            result = self._reconnect(player_id, name, avatar)
            if result is not None:
                return result

            player = Player(id=player_id, name=name, avatar=avatar)
            if self.state == "playing":
                return self._add_spectator(player)
            if len(self.players) >= self.settings.max_players:
                return fail("Room is full")

            self.players[player_id] = player
            self.broadcast("room:playerJoined", {"player": player.to_json()})
            return ok(asSpectator=False, reconnected=False)

    def remove_player(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            if player_id in self.spectators:
                self._remove_spectator(player_id)
                return ok(wasSpectator=True)

            player = self.players.pop(player_id, None)
            if player is None:
                return fail("Player not in room")

            self.broadcast("room:playerLeft", {"playerId": player_id, "name": player.name})
            self._reassign_host(player_id)

            if self.state == "playing" and player_id in self.player_order:
                self._drop_from_order(player_id)
            return ok(wasSpectator=False)

    def _drop_from_order(self, player_id: str) -> None:
        self.current_index %= len(self.player_order)
        position = self.player_order.index(player_id)
        was_current = position == self.current_index
        self.player_order.remove(player_id)

        if len(self.player_order) < MIN_PLAYERS:
            self._end_game(None, "Not enough players")
            return

        # The next turn starts from whoever now sits after the cursor.
        if position <= self.current_index:
            self.current_index -= 1

        if player_id in self.steal_queue:
            slot = self.steal_queue.index(player_id)
            was_stealing = self.current_stealer_id == player_id
            self.steal_queue.remove(player_id)
            if slot < self.stealer_index:
                self.stealer_index -= 1
            if was_stealing:
                self.cancel("phase")
                self._continue_steals()

        if was_current and self.turn_phase in ("listening", "placing"):
            self.cancel("phase")
            self._end_turn()

    def disconnect_player(self, player_id: str) -> dict[str, Any]:
        """Connection lost. Timers resolve the seat's pending turns."""
        with self.lock:
            if self.state != "playing":
                return self.remove_player(player_id)

            participant = self.players.get(player_id) or self.spectators.get(player_id)
            if participant is None:
                return fail("Player not in room")
            participant.connected = False
            if player_id in self.players:
                self.broadcast("room:playerDisconnected", {"playerId": player_id})
                if not self.connected_players():
                    self._end_game(None, "All players left")
            return ok(disconnected=True)

    # -- game flow ----------------------------------------------------------

    def start_game(self, requester_id: str) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can start the game")
            if self.state != "waiting":
                return fail("Game already in progress")
            if len(self.players) < MIN_PLAYERS:
                return fail(f"Need at least {MIN_PLAYERS} players")
            if not len(self.songs):
                return fail("No songs available")

            self.player_order = list(self.players.keys())
            self.rng.shuffle(self.player_order)
            self.current_index = 0
            self.used_songs.clear()
            self.winner_id = None
            self.end_reason = None
            for p in self.players.values():
                p.timeline = []
                p.score = 0

            self._set_state("playing")
            logger.info("timeline room %s: game started, order=%s", self.id, self.player_order)
            self.broadcast(
                "game:started",
                {"playerOrder": list(self.player_order), "cardsToWin": self.settings.cards_to_win},
            )
            self._start_turn()
            return ok()

    def _draw_song(self) -> Song:
        available = [s for s in self.songs.songs if s.id not in self.used_songs]
        if not available:
            self.used_songs.clear()
            available = list(self.songs.songs)
        song = self.rng.choice(available)
        self.used_songs.add(song.id)
        return song

    def _start_turn(self) -> None:
        self.current_song = self._draw_song()
        self.song_revealed = False
        self.steal_queue = []
        self.stealer_index = 0
        self._set_phase("listening")

        player = self.current_player()
        self.broadcast(
            "game:turnStart",
            {
                "playerId": player.id,
                "name": player.name,
                "songId": self.current_song.id,
                "listenTime": self.settings.listen_time,
            },
        )
        self.schedule("phase", self.settings.listen_time, self._on_listen_timeout)

    def _on_listen_timeout(self) -> None:
        if self.turn_phase != "listening":
            return
        self._enter_placing()

    def start_placing(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            if self.state != "playing" or self.turn_phase != "listening":
                return fail("Not in listening phase")
            current = self.current_player()
            if current is None or current.id != player_id:
                return fail("Not your turn")
            self._enter_placing()
            return ok()

    def _enter_placing(self) -> None:
        self._set_phase("placing")
        current = self.current_player()
        self.broadcast("game:placing", {"playerId": current.id, "placeTime": self.settings.place_time})
        self.schedule("phase", self.settings.place_time, self._on_place_timeout)

    def _on_place_timeout(self) -> None:
        if self.turn_phase != "placing":
            return
        current = self.current_player()
        logger.info("timeline room %s: %s ran out of time to place", self.id, current.name)
        if self.stats is not None:
            self.stats.record_attempt(current.id, current.name, correct=False, steal=False)
        self.broadcast("game:cardPlaced", {"playerId": current.id, "correct": False, "timeout": True})
        self._open_steals(current)

    def check_placement(self, player_id: str, position: int) -> dict[str, Any]:
        with self.lock:
            player = self.players.get(player_id)
            if player is None or self.current_song is None:
                return fail("Invalid state")
            if not isinstance(position, int) or isinstance(position, bool) or not 0 <= position <= len(player.timeline):
                return fail("Invalid position")
            return ok(correct=is_correct_placement(player.years(), self.current_song.year, position))

    def place_card(self, player_id: str, position: int) -> dict[str, Any]:
        with self.lock:
            if self.state != "playing" or self.turn_phase not in ("listening", "placing"):
                return fail("Not in placing phase")
            current = self.current_player()
            if current is None or current.id != player_id:
                return fail("Not your turn")
            check = self.check_placement(player_id, position)
            if not check["success"]:
                return check

            self.cancel("phase")
            if check["correct"]:
                won = self._award(current, position, steal=False)
                return ok(correct=True, gameWon=won)

            if self.stats is not None:
                self.stats.record_attempt(current.id, current.name, correct=False, steal=False)
            self.broadcast("game:cardPlaced", {"playerId": current.id, "correct": False, "position": position})
            self._open_steals(current)
            return ok(correct=False, canSteal=self.turn_phase == "stealing")

    def _award(self, player: Player, position: int, steal: bool) -> bool:
        song = self.current_song
        player.timeline.insert(position, song)
        player.timeline.sort(key=lambda s: s.year)
        player.score += 1
        if self.stats is not None:
            self.stats.record_attempt(player.id, player.name, correct=True, steal=steal)

        self.song_revealed = True
        self.broadcast(
            "game:cardPlaced",
            {
                "playerId": player.id,
                "correct": True,
                "stolen": steal,
                "song": song.to_json(),
                "timeline": [s.to_json() for s in player.timeline],
                "score": player.score,
            },
        )

        if player.score >= self.settings.cards_to_win:
            self._end_game(player.id)
            return True
        self._end_turn()
        return False

    def _open_steals(self, owner: Player) -> None:
        self.steal_queue = [pid for pid in self.player_order if pid != owner.id and self.players[pid].connected]
        self.stealer_index = 0
        if not self.steal_queue:
            self._end_turn()
            return
        self._set_phase("stealing")
        self._announce_stealer()

    def _announce_stealer(self) -> None:
        stealer_id = self.current_stealer_id
        self.broadcast("game:stealTurn", {"stealerId": stealer_id, "stealTime": self.settings.steal_time})
        self.schedule("phase", self.settings.steal_time, self._on_steal_timeout, stealer_id)

    def _continue_steals(self) -> None:
        if self.stealer_index >= len(self.steal_queue):
            self._end_turn()
        else:
            self._announce_stealer()

    def _on_steal_timeout(self, stealer_id: str) -> None:
        if self.current_stealer_id != stealer_id:
            return
        self.broadcast("game:stealPassed", {"playerId": stealer_id, "timeout": True})
        self.stealer_index += 1
        self._continue_steals()

    def _steal_error(self, player_id: str) -> dict[str, Any] | None:
        if self.state != "playing" or self.turn_phase != "stealing":
            return fail("Not in stealing phase")
        if player_id != self.current_stealer_id:
            return fail("Not your turn to steal")
        return None

    def steal_card(self, player_id: str, position: int) -> dict[str, Any]:
        with self.lock:
            error = self._steal_error(player_id)
            if error:
                return error
            check = self.check_placement(player_id, position)
            if not check["success"]:
                return check

            self.cancel("phase")
            player = self.players[player_id]
            if check["correct"]:
                won = self._award(player, position, steal=True)
                return ok(correct=True, stolen=True, gameWon=won)

            if self.stats is not None:
                self.stats.record_attempt(player.id, player.name, correct=False, steal=True)
            self.broadcast("game:stealFailed", {"playerId": player_id, "position": position})
            self.stealer_index += 1
            self._continue_steals()
            return ok(correct=False, stolen=False)

    def pass_steal(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            error = self._steal_error(player_id)
            if error:
                return error
            self.cancel("phase")
            self.broadcast("game:stealPassed", {"playerId": player_id, "timeout": False})
            self.stealer_index += 1
            self._continue_steals()
            return ok()

    def _end_turn(self) -> None:
        self.song_revealed = True
        self._set_phase("reveal")
        self.broadcast(
            "game:reveal",
            {"song": self.current_song.to_json() if self.current_song else None, "players": self.player_list()},
        )
        self.schedule("phase", REVEAL_DELAY_SEC, self._next_turn)

    def _next_turn(self) -> None:
        if self.state != "playing" or self.turn_phase != "reveal":
            return
        seats = [self.players[pid] for pid in self.player_order]
        self.current_index = advance_turn(seats, self.current_index, 1)
        self._start_turn()

    def _end_game(self, winner_id: str | None, reason: str | None = None) -> None:
        self.cancel_all()
        self.winner_id = winner_id
        self.end_reason = reason
        self.song_revealed = True
        self.turn_phase = None
        self._set_state("ended")

        if self.stats is not None:
            for p in self.players.values():
                self.stats.record_game(p.id, p.name, won=p.id == winner_id)

        winner = self.players.get(winner_id) if winner_id else None
        logger.info("timeline room %s: game ended (%s), winner=%s", self.id, reason or "finished", winner.name if winner else None)
        self.broadcast(
            "game:end",
            {
                "winner": winner.to_json() if winner else None,
                "reason": reason,
                "song": self.current_song.to_json() if self.current_song else None,
                "standings": sorted(self.player_list(), key=lambda p: p["score"], reverse=True),
            },
        )
        self.schedule("reset", RESET_DELAY_SEC, self._reset_to_waiting)

    def _reset_to_waiting(self) -> None:
        if self.state != "ended":
            return
        self._set_state("waiting")
        self.player_order = []
        self.current_index = 0
        self.current_song = None
        self.steal_queue = []
        self.stealer_index = 0

        for pid in [pid for pid, p in self.players.items() if not p.connected]:
            del self.players[pid]
        for pid in [pid for pid, s in self.spectators.items() if not s.connected]:
            del self.spectators[pid]
        self._promote_spectators(self.settings.max_players)
        for p in self.players.values():
            p.timeline = []
            p.score = 0
        if self.host_id not in self.players:
            self._reassign_host(self.host_id)

        self.broadcast("room:reset", {"players": self.player_list(), "spectators": self.spectator_list()})

    # -- serialization ------------------------------------------------------

    def player_list(self) -> list[dict[str, Any]]:
        return [p.to_json() for p in self.players.values()]

    def to_json(self) -> dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "name": self.name,
                "hostId": self.host_id,
                "state": self.state,
                "playerCount": len(self.players),
                "spectatorCount": len(self.spectators),
                "maxPlayers": self.settings.max_players,
                "cardsToWin": self.settings.cards_to_win,
                "settings": self.settings.to_json(),
                "players": self.player_list(),
                "spectators": self.spectator_list(),
            }

    def get_state(self, for_player_id: str | None = None) -> dict[str, Any]:
        with self.lock:
            payload = self.to_json()
            current = self.current_player() if self.state == "playing" else None
            song = None
            if self.current_song is not None:
                song = self.current_song.to_json() if self.song_revealed else {"id": self.current_song.id}
            payload.update(
                {
                    "playerOrder": list(self.player_order),
                    "currentPlayerId": current.id if current else None,
                    "turnPhase": self.turn_phase,
                    "currentStealerId": self.current_stealer_id,
                    "currentSong": song,
                    "winnerId": self.winner_id,
                    "endReason": self.end_reason,
                }
            )
            me = self.players.get(for_player_id) if for_player_id else None
            if me is not None:
                payload["timeline"] = [s.to_json() for s in me.timeline]
            return payload


class TimelineManager(RoomManager[TimelineRoom]):
    id_prefix = "timeline"

    def __init__(
        self,
        scheduler: Scheduler,
        stats: TimelineStats,
        songs: SongPool,
        cards_to_win: int = CARDS_TO_WIN,
        rng: random.Random | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scheduler, stats, **kwargs)
        self.songs = songs
        self.cards_to_win = cards_to_win
        self.rng = rng

    def build_room(self, room_id, name, host_id, host_name, host_avatar, settings):
        room = TimelineRoom(
            room_id,
            name or f"{host_name}'s room",
            host_id,
            self.scheduler,
            self.stats,
            self.songs,
            settings=RoomSettings.from_dict(settings, cards_to_win=self.cards_to_win),
            rng=self.rng,
        )
        room.add_player(host_id, host_name, host_avatar)
        return room
