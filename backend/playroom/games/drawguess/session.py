from __future__ import annotations

import logging
import random
from typing import Any

from ...core.content import WordPool
from ...core.results import fail, ok
from ...core.room import BaseRoom, RoomManager
from ...core.scheduler import Scheduler
from ...core.stats import StatsStore
from .models import (
    CUSTOM_WORD_CHANCE,
    DRAWER_BONUS,
    GAME_OVER_DELAY_SEC,
    HINT_FRACTIONS,
    MAX_DRAW_HISTORY,
    NEXT_ROUND_DELAY_SEC,
    RESET_DELAY_SEC,
    ROUND_TIME_SEC,
    WORD_CHOICE_TIMEOUT_SEC,
    WORD_CHOICES_COUNT,
    CorrectGuess,
    DrawingStats,
    Player,
    RoomSettings,
    RoomState,
)
from .rules import (
    blank_hint,
    calculate_guesser_score,
    check_guess,
    extend_reveal,
    hint_offsets,
    render_hint,
    reveal_target,
)

logger = logging.getLogger(__name__)

ACTIVE_STATES: tuple[RoomState, ...] = ("choosing", "playing", "between_rounds")


class DrawGuessRoom(BaseRoom):
    def __init__(
        self,
        room_id: str,
        name: str,
        host_id: str,
        scheduler: Scheduler,
        stats: StatsStore | None,
        words: WordPool,
        settings: RoomSettings | None = None,
        min_players: int = 2,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(room_id, name, host_id, scheduler, stats)
        self.settings = settings or RoomSettings()
        self.words = words
        self.min_players = max(1, min_players)
        self.rng = rng or random.Random()

        self.current_round = 0
        self.drawer_index = 0
        self.word_choices: list[str] = []
        self.current_word: str | None = None
        self.revealed: set[int] = set()
        self.hints_revealed = 0
        self.round_started_at: float | None = None
        self.correct_guessers: list[CorrectGuess] = []
        self.draw_history: list[dict[str, Any]] = []
        self.redo_history: list[dict[str, Any]] = []
        self.drawing_stats: dict[str, DrawingStats] = {}
        self.guess_counts: dict[str, int] = {}
        self.used_words: set[str] = set()
        self.end_reason: str | None = None

    # -- derived accessors --------------------------------------------------

    @property
    def player_order(self) -> list[str]:
        return list(self.players.keys())

    def current_drawer(self) -> Player | None:
        order = self.player_order
        if not order:
            return None
        return self.players[order[self.drawer_index % len(order)]]

    @property
    def current_hint(self) -> str | None:
        if self.current_word is None:
            return None
        return render_hint(self.current_word, self.revealed)

    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def _is_drawer(self, player_id: str) -> bool:
        drawer = self.current_drawer()
        return drawer is not None and drawer.id == player_id

    # -- membership ---------------------------------------------------------

    def add_player(self, player_id: str, name: str, avatar: str | None = None) -> dict[str, Any]:
        with self.lock:
            result = self._reconnect(player_id, name, avatar)
            if result is not None:
                return result

            player = Player(id=player_id, name=name, avatar=avatar)
            if self.is_active():
                # Late joiners watch until the room resets.
                return self._add_spectator(player)

            if len(self.players) >= self.settings.max_players:
                return fail("Room is full")

            self.players[player_id] = player
            self.broadcast("room:playerJoined", {"player": player.to_json()})
            return ok(asSpectator=False, reconnected=False)

    def remove_player(self, player_id: str) -> dict[str, Any]:
        """Explicit leave. Removes the player even mid-game."""
        with self.lock:
            if player_id in self.spectators:
                self._remove_spectator(player_id)
                return ok(wasSpectator=True)

            player = self.players.get(player_id)
            if player is None:
                return fail("Player not in room")

            position = self.player_order.index(player_id)
            was_drawing = self.state in ("choosing", "playing") and self._is_drawer(player_id)

            del self.players[player_id]
            self.broadcast("room:playerLeft", {"playerId": player_id, "name": player.name})
            self._reassign_host(player_id)

            if self.is_active():
                # Keep the rotation pointing at the same upcoming drawer.
                if position < self.drawer_index:
                    self.drawer_index -= 1

                if was_drawing:
                    self._end_round(drawer_left=True, advance=False)
                elif self.state == "playing" and self._everyone_guessed():
                    self._end_round()

                if self.state in ("choosing", "playing") and len(self.players) < self.min_players:
                    self._end_game("Not enough players")
                elif self.is_active() and not self.players:
                    self._end_game("Not enough players")

            return ok(wasSpectator=False)

    def disconnect_player(self, player_id: str) -> dict[str, Any]:
        """Connection lost. Outside a game this is a leave; during one the seat is kept."""
        with self.lock:
            if not self.is_active():
                return self.remove_player(player_id)

            participant = self.players.get(player_id) or self.spectators.get(player_id)
            if participant is None:
                return fail("Player not in room")
            participant.connected = False
            if player_id in self.spectators:
                return ok(disconnected=True)

            self.broadcast("room:playerDisconnected", {"playerId": player_id})

            if not self.connected_players():
                self._end_game("All players left")
            elif self.state in ("choosing", "playing") and self._is_drawer(player_id):
                self._end_round(drawer_left=True)
            elif self.state == "playing" and self._everyone_guessed():
                self._end_round()
            return ok(disconnected=True)

    def promote_spectator(self, requester_id: str, spectator_id: str) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can promote spectators")
            if self.state != "waiting":
                return fail("Spectators can only be promoted between games")
            spectator = self.spectators.get(spectator_id)
            if spectator is None:
                return fail("Spectator not found")
            if len(self.players) >= self.settings.max_players:
                return fail("Room is full")

            del self.spectators[spectator_id]
            spectator.is_spectator = False
            spectator.score = 0
            self.players[spectator_id] = spectator
            self.broadcast("room:spectatorPromoted", {"player": spectator.to_json()})
            return ok()

    def update_settings(self, requester_id: str, raw: dict[str, Any]) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can change settings")
            if self.state != "waiting":
                return fail("Settings are locked during a game")
            changed = self.settings.update(raw or {})
            if changed:
                self.broadcast("room:settings", {"settings": self.settings.to_json()})
            return ok(changed=changed)

    # -- game flow ----------------------------------------------------------

    def start_game(self, requester_id: str) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can start the game")
            if self.state != "waiting":
                return fail("Game already in progress")
            if len(self.connected_players()) < self.min_players:
                return fail(f"Need at least {self.min_players} players")

            self.current_round = 1
            self.drawer_index = 0
            self.drawing_stats.clear()
            self.guess_counts.clear()
            self.used_words.clear()
            self.end_reason = None
            for p in self.players.values():
                p.score = 0
                p.has_guessed = False

            logger.info("drawguess room %s: game started with %d players", self.id, len(self.players))
            self.broadcast(
                "game:started",
                {
                    "round": self.current_round,
                    "totalRounds": self.settings.rounds,
                    "players": self.player_list(),
                },
            )
            self._start_round()
            return ok()

    def _pick_word(self) -> str:
        custom = self.settings.custom_words
        if custom and self.rng.random() < CUSTOM_WORD_CHANCE:
            return self.rng.choice(custom)
        return self.words.random_word(self.settings.difficulty, self.settings.language, self.rng)

    def _offer_words(self) -> list[str]:
        choices: list[str] = []
        for _ in range(WORD_CHOICES_COUNT * 10):
            if len(choices) == WORD_CHOICES_COUNT:
                break
            word = self._pick_word()
            if word in choices or word in self.used_words:
                continue
            choices.append(word)

        if len(choices) < WORD_CHOICES_COUNT:
            # Small pool: fall back to anything distinct, repeats across rounds allowed.
            candidates = list(dict.fromkeys(self.settings.custom_words + self.words.bucket(self.settings.difficulty, self.settings.language)))
            self.rng.shuffle(candidates)
            for word in candidates:
                if len(choices) == WORD_CHOICES_COUNT:
                    break
                if word not in choices:
                    choices.append(word)

        self.used_words.update(choices)
        return choices

    def _start_round(self) -> None:
        self.word_choices = self._offer_words()
        self.current_word = None
        self.revealed = set()
        self.hints_revealed = 0
        self.round_started_at = None
        self.correct_guessers = []
        self.draw_history = []
        self.redo_history = []
        for p in self.players.values():
            p.has_guessed = False

        self._set_state("choosing")

        drawer = self.current_drawer()
        self.drawing_stats.setdefault(drawer.id, DrawingStats()).rounds_drawn += 1

        self.broadcast(
            "game:choosing",
            {
                "round": self.current_round,
                "totalRounds": self.settings.rounds,
                "drawerId": drawer.id,
                "drawerName": drawer.name,
            },
        )
        self.send_to(drawer.id, "game:chooseWord", {"words": list(self.word_choices), "timeLimit": WORD_CHOICE_TIMEOUT_SEC})
        self.schedule("word_choice", WORD_CHOICE_TIMEOUT_SEC, self._auto_select_word)

    def _auto_select_word(self) -> None:
        if self.state != "choosing" or not self.word_choices:
            return
        logger.info("drawguess room %s: drawer timed out, picking %r", self.id, self.word_choices[0])
        self._select_word_locked(self.word_choices[0])

    def select_word(self, player_id: str, word: str) -> dict[str, Any]:
        with self.lock:
            if self.state != "choosing":
                return fail("Not choosing a word right now")
            if not self._is_drawer(player_id):
                return fail("Only the drawer can choose the word")
            w = (word or "").strip()
            if w not in self.word_choices:
                return fail("Word not offered")

            self._select_word_locked(w)
            return ok(word=w)

    def _select_word_locked(self, word: str) -> None:
        self.cancel("word_choice")
        self.current_word = word
        self.word_choices = []
        self.revealed = set()
        self.hints_revealed = 0
        self.round_started_at = self.scheduler.now()
        self._set_state("playing")

        drawer = self.current_drawer()
        self.broadcast(
            "game:roundStart",
            {
                "round": self.current_round,
                "drawerId": drawer.id,
                "drawerName": drawer.name,
                "hint": blank_hint(word),
                "wordLength": len(word),
                "timeLimit": self.settings.round_time,
            },
        )
        self.send_to(drawer.id, "game:yourTurn", {"word": word})

        self.schedule("round", self.settings.round_time, self._on_round_timeout)
        for i, offset in enumerate(hint_offsets(self.settings.round_time)):
            self.schedule(f"hint:{i}", offset, self._reveal_hint, i + 1)

    def _reveal_hint(self, hint_number: int) -> None:
        if self.state != "playing" or not self.current_word:
            return
        target = reveal_target(self.current_word, hint_number)
        extend_reveal(self.current_word, self.revealed, target, self.rng)
        self.hints_revealed = max(self.hints_revealed, hint_number)
        self.broadcast("game:hint", {"hint": self.current_hint, "hintsRevealed": self.hints_revealed})

    def _on_round_timeout(self) -> None:
        if self.state != "playing":
            return
        self._end_round()

    def handle_guess(self, player_id: str, guess: str) -> dict[str, Any]:
        with self.lock:
            if player_id in self.spectators:
                return fail("Spectators cannot guess")
            player = self.players.get(player_id)
            if player is None:
                return fail("Player not in room")
            if self.state != "playing" or self.current_word is None:
                return fail("No round in progress")
            if self._is_drawer(player_id):
                return fail("Drawer cannot guess")
            if player.has_guessed:
                return fail("Already guessed correctly")

            result = check_guess(guess, self.current_word)
            if result.close:
                self.send_to(player_id, "game:closeGuess", {"guess": guess})
                return ok(correct=False, close=True)
            if not result.correct:
                return ok(correct=False, close=False)

            drawer = self.current_drawer()
            elapsed = int(self.scheduler.now() - (self.round_started_at or self.scheduler.now()))
            is_first = not self.correct_guessers
            score = calculate_guesser_score(elapsed, is_first)

            player.has_guessed = True
            player.score += score
            self.guess_counts[player_id] = self.guess_counts.get(player_id, 0) + 1
            self.correct_guessers.append(CorrectGuess(player_id=player_id, name=player.name, score=score, time_elapsed=elapsed))
            if is_first:
                self.drawing_stats.setdefault(drawer.id, DrawingStats()).successful_drawings += 1
            drawer.score += DRAWER_BONUS

            self.broadcast(
                "game:correctGuess",
                {
                    "playerId": player_id,
                    "name": player.name,
                    "score": score,
                    "isFirst": is_first,
                    "players": self.player_list(),
                },
            )
            logger.info("drawguess room %s: %s guessed %r after %ss", self.id, player.name, self.current_word, elapsed)

            if self._everyone_guessed():
                self._end_round()
            return ok(correct=True, close=False, score=score)

    def _everyone_guessed(self) -> bool:
        drawer = self.current_drawer()
        guessers = [p for p in self.connected_players() if drawer is None or p.id != drawer.id]
        return bool(guessers) and all(p.has_guessed for p in guessers)

    def _wrap_drawer_index(self) -> None:
        if self.drawer_index >= len(self.players):
            self.drawer_index = 0
            self.current_round += 1

    def _end_round(self, drawer_left: bool = False, advance: bool = True) -> None:
        self.cancel("round")
        self.cancel("word_choice")
        for i in range(len(HINT_FRACTIONS)):
            self.cancel(f"hint:{i}")

        word = self.current_word
        self.current_word = None
        self.word_choices = []
        self.broadcast(
            "game:roundEnd",
            {
                "word": word,
                "drawerLeft": drawer_left,
                "correctGuessers": [g.to_json() for g in self.correct_guessers],
                "players": self.player_list(),
            },
        )

        if advance:
            self.drawer_index += 1
        self._wrap_drawer_index()
        self._set_state("between_rounds")

        if self.current_round > self.settings.rounds:
            self.schedule("game_over", GAME_OVER_DELAY_SEC, self._finish_after_last_round)
        else:
            self.schedule("next_round", NEXT_ROUND_DELAY_SEC, self._next_round)

    def _finish_after_last_round(self) -> None:
        if self.state != "between_rounds":
            return
        self._end_game()

    def _next_round(self) -> None:
        if self.state != "between_rounds":
            return
        if len(self.connected_players()) < self.min_players:
            self._end_game("Not enough players")
            return

        self._wrap_drawer_index()
        # Skip drawers who dropped; each skip may complete a rotation.
        for _ in range(len(self.players)):
            if self.current_round > self.settings.rounds or self.current_drawer().connected:
                break
            self.drawer_index += 1
            self._wrap_drawer_index()

        if self.current_round > self.settings.rounds:
            self._end_game()
            return
        self._start_round()

    def _end_game(self, reason: str | None = None) -> None:
        self.cancel_all()
        self.current_word = None
        self.word_choices = []
        self.end_reason = reason
        self._set_state("ended")

        ranking = sorted(self.players.values(), key=lambda p: p.score, reverse=True)
        winner = ranking[0] if ranking else None

        if self.stats is not None:
            for p in self.players.values():
                drawn = self.drawing_stats.get(p.id, DrawingStats())
                self.stats.record_game(
                    p.id,
                    p.name,
                    won=winner is not None and p.id == winner.id,
                    totalPoints=p.score,
                    correctGuesses=self.guess_counts.get(p.id, 0),
                    roundsDrawn=drawn.rounds_drawn,
                    successfulDrawings=drawn.successful_drawings,
                )

        logger.info(
            "drawguess room %s: game ended (%s), winner=%s",
            self.id,
            reason or "finished",
            winner.name if winner else None,
        )
        self.broadcast(
            "game:end",
            {
                "reason": reason,
                "winner": winner.to_json() if winner else None,
                "finalScores": [p.to_json() for p in ranking],
            },
        )
        self.schedule("reset", RESET_DELAY_SEC, self._reset_to_waiting)

    def _reset_to_waiting(self) -> None:
        if self.state != "ended":
            return
        self._set_state("waiting")
        self.current_round = 0
        self.drawer_index = 0
        self.drawing_stats.clear()
        self.guess_counts.clear()
        self.draw_history = []
        self.redo_history = []

        # Dropped seats are released here; they can join again as new players.
        for pid in [pid for pid, p in self.players.items() if not p.connected]:
            del self.players[pid]
        for pid in [pid for pid, s in self.spectators.items() if not s.connected]:
            del self.spectators[pid]
        self._promote_spectators(self.settings.max_players)
        for p in self.players.values():
            p.score = 0
            p.has_guessed = False
        if self.host_id not in self.players:
            self._reassign_host(self.host_id)

        self.broadcast("room:reset", {"players": self.player_list(), "spectators": self.spectator_list()})

    # -- drawing ------------------------------------------------------------

    def _drawing_error(self, player_id: str) -> dict[str, Any] | None:
        if self.state != "playing":
            return fail("Not drawing right now")
        if not self._is_drawer(player_id):
            return fail("Only the drawer can draw")
        return None

    def _push_stroke(self, stroke: dict[str, Any]) -> None:
        self.draw_history.append(stroke)
        self.redo_history = []
        if len(self.draw_history) > MAX_DRAW_HISTORY:
            del self.draw_history[0]

    def add_stroke(self, player_id: str, stroke: dict[str, Any]) -> dict[str, Any]:
        with self.lock:
            error = self._drawing_error(player_id)
            if error:
                return error
            if not isinstance(stroke, dict):
                return fail("Invalid stroke")
            self._push_stroke(stroke)
            self.broadcast("draw:stroke", {"stroke": stroke}, exclude_id=player_id)
            return ok()

    def fill(self, player_id: str, x: float, y: float, color: str) -> dict[str, Any]:
        with self.lock:
            error = self._drawing_error(player_id)
            if error:
                return error
            record = {"type": "fill", "x": x, "y": y, "color": color}
            self._push_stroke(record)
            self.broadcast("draw:fill", {"stroke": record}, exclude_id=player_id)
            return ok()

    def undo(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            error = self._drawing_error(player_id)
            if error:
                return error
            if not self.draw_history:
                return fail("Nothing to undo")
            stroke = self.draw_history.pop()
            self.redo_history.append(stroke)
            self.broadcast("draw:undo", {})
            return ok(stroke=stroke)

    def redo(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            error = self._drawing_error(player_id)
            if error:
                return error
            if not self.redo_history:
                return fail("Nothing to redo")
            stroke = self.redo_history.pop()
            self.draw_history.append(stroke)
            self.broadcast("draw:redo", {})
            return ok(stroke=stroke)

    def clear_canvas(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            error = self._drawing_error(player_id)
            if error:
                return error
            self.draw_history = []
            self.redo_history = []
            self.broadcast("draw:clear", {})
            return ok()

    def get_draw_state(self) -> dict[str, Any]:
        with self.lock:
            return {"history": list(self.draw_history)}

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
                "difficulty": self.settings.difficulty,
                "language": self.settings.language,
                "currentRound": self.current_round,
                "totalRounds": self.settings.rounds,
                "players": self.player_list(),
                "spectators": self.spectator_list(),
            }

    def get_state(self, for_player_id: str | None = None) -> dict[str, Any]:
        with self.lock:
            payload = self.to_json()
            drawer = self.current_drawer() if self.is_active() else None
            payload.update(
                {
                    "drawerId": drawer.id if drawer else None,
                    "hint": self.current_hint,
                    "hintsRevealed": self.hints_revealed,
                    "roundTime": self.settings.round_time,
                    "correctGuessers": [g.to_json() for g in self.correct_guessers],
                    "endReason": self.end_reason,
                }
            )
            if for_player_id and drawer is not None and for_player_id == drawer.id:
                if self.current_word:
                    payload["word"] = self.current_word
                if self.state == "choosing" and self.word_choices:
                    payload["wordChoices"] = list(self.word_choices)
            return payload


class DrawGuessManager(RoomManager[DrawGuessRoom]):
    id_prefix = "room"

    def __init__(
        self,
        scheduler: Scheduler,
        stats: StatsStore,
        words: WordPool,
        min_players: int = 2,
        round_time: int = ROUND_TIME_SEC,
        rng: random.Random | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scheduler, stats, **kwargs)
        self.words = words
        self.min_players = min_players
        self.round_time = round_time
        self.rng = rng

    def build_room(self, room_id, name, host_id, host_name, host_avatar, settings):
        room = DrawGuessRoom(
            room_id,
            name or f"{host_name}'s room",
            host_id,
            self.scheduler,
            self.stats,
            self.words,
            settings=RoomSettings.from_dict(settings, round_time=self.round_time),
            min_players=self.min_players,
            rng=self.rng,
        )
        room.add_player(host_id, host_name, host_avatar)
        return room
