from __future__ import annotations

import logging
import random
import time
from typing import Any

from ...core.results import fail, ok
from ...core.room import BaseRoom, RoomManager
from ...core.scheduler import Scheduler
from ...core.turns import advance_turn, reverse_direction
from .bot import choose_bot_move
from .cards import DRAW_PENALTY, SUITS, Card, create_deck, draw_opening_card, shuffle_deck
from .leaderboard import ShedStats
from .models import (
    BOT_DELAY_SEC,
    BOT_NAMES,
    DEFAULT_MAX_PLAYERS,
    HAND_SIZE,
    LOG_LIMIT,
    LOG_VISIBLE,
    MIN_PLAYERS,
    Player,
    RoomState,
    clamp_max_players,
    new_game_stats,
)
from .rules import can_play_card

logger = logging.getLogger(__name__)


class ShedRoom(BaseRoom):
    ended_states: tuple[RoomState, ...] = ("finished",)

    def __init__(
        self,
        room_id: str,
        name: str,
        host_id: str,
        scheduler: Scheduler,
        stats: ShedStats | None,
        max_players: int = DEFAULT_MAX_PLAYERS,
        bot_delay: float = BOT_DELAY_SEC,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(room_id, name, host_id, scheduler, stats)
        self.max_players = clamp_max_players(max_players)
        self.bot_delay = bot_delay
        self.rng = rng or random.Random()

        self.deck: list[Card] = []
        self.discard_pile: list[Card] = []
        self.current_index = 0
        self.direction = 1
        self.chosen_suit: str | None = None
        self.pending_draws = 0
        self.winner_id: str | None = None
        self.end_reason: str | None = None
        self.game_log: list[dict[str, Any]] = []
        self._bot_counter = 0

    # -- derived accessors --------------------------------------------------

    @property
    def seats(self) -> list[Player]:
        return list(self.players.values())

    def current_player(self) -> Player | None:
        seats = self.seats
        if not seats:
            return None
        return seats[self.current_index % len(seats)]

    def top_card(self) -> Card | None:
        return self.discard_pile[-1] if self.discard_pile else None

    def humans(self) -> list[Player]:
        return [p for p in self.players.values() if not p.is_bot]

    def is_empty(self) -> bool:
        return not self.humans() and not self.spectators

    def _log(self, message: str) -> None:
        self.game_log.append({"time": int(time.time() * 1000), "message": message})
        if len(self.game_log) > LOG_LIMIT:
            del self.game_log[0]

    # -- membership ---------------------------------------------------------

    def add_player(self, player_id: str, name: str, avatar: str | None = None) -> dict[str, Any]:
        with self.lock:
            result = self._reconnect(player_id, name, avatar)
            if result is not None:
                return result

            player = Player(id=player_id, name=name, avatar=avatar)
            if self.state != "waiting":
                return self._add_spectator(player)
            if len(self.players) >= self.max_players:
                return fail("Room is full")

            self.players[player_id] = player
            self.broadcast("room:playerJoined", {"player": player.to_json()})
            return ok(asSpectator=False, reconnected=False)

    def add_bot(self, requester_id: str | None = None) -> dict[str, Any]:
        with self.lock:
            if requester_id is not None and requester_id != self.host_id:
                return fail("Only the host can add bots")
            if self.state != "waiting":
                return fail("Game already in progress")
            if len(self.players) >= self.max_players:
                return fail("Room is full")

            self._bot_counter += 1
            bot_name = BOT_NAMES[(self._bot_counter - 1) % len(BOT_NAMES)]
            bot_id = f"bot_{self.id}_{self._bot_counter}"
            bot = Player(id=bot_id, name=bot_name, is_bot=True)
            self.players[bot_id] = bot
            self.broadcast("room:playerJoined", {"player": bot.to_json()})
            return ok(botId=bot_id, botName=bot_name)

    def remove_bot(self, bot_id: str, requester_id: str | None = None) -> dict[str, Any]:
        with self.lock:
            if requester_id is not None and requester_id != self.host_id:
                return fail("Only the host can remove bots")
            if self.state != "waiting":
                return fail("Cannot remove bot during game")
            bot = self.players.get(bot_id)
            if bot is None or not bot.is_bot:
                return fail("Bot not found")
            del self.players[bot_id]
            self.broadcast("room:playerLeft", {"playerId": bot_id, "name": bot.name})
            return ok()

    def remove_player(self, player_id: str) -> dict[str, Any]:
        """Leave. During a game the seat stays, marked disconnected."""
        with self.lock:
            if player_id in self.spectators:
                self._remove_spectator(player_id)
                return ok(wasSpectator=True)

            player = self.players.get(player_id)
            if player is None:
                return fail("Player not found")

            if self.state == "playing":
                player.connected = False
                self.broadcast("room:playerDisconnected", {"playerId": player_id})
                self._log(f"{player.name} left the game.")
                self._reassign_host(player_id)

                if not any(p.connected for p in self.humans()):
                    self._finish(None, "All players left")
                    return ok(gameEnded=True)

                current = self.current_player()
                if current is not None and current.id == player_id:
                    self._advance()
                    self._after_turn_change()
                return ok(disconnected=True)

            del self.players[player_id]
            self.broadcast("room:playerLeft", {"playerId": player_id, "name": player.name})
            self._reassign_host(player_id)
            return ok()

    def disconnect_player(self, player_id: str) -> dict[str, Any]:
        return self.remove_player(player_id)

    # -- game flow ----------------------------------------------------------

    def start_game(self, requester_id: str) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can start the game")
            if self.state != "waiting":
                return fail("Game already started")
            if len(self.players) < MIN_PLAYERS:
                return fail(f"Need at least {MIN_PLAYERS} players")

            self.deck = shuffle_deck(create_deck(), self.rng)
            opening = draw_opening_card(self.deck, self.rng)
            self.discard_pile = [opening]
            self.direction = 1
            self.chosen_suit = None
            self.pending_draws = 0
            self.winner_id = None
            self.end_reason = None
            self.game_log = []

            # A full table cannot get seven each out of 53 cards.
            hand_size = min(HAND_SIZE, len(self.deck) // len(self.players))
            for player in self.players.values():
                player.hand = [self.deck.pop() for _ in range(hand_size)]
                player.game_stats = new_game_stats()

            self.current_index = self.rng.randrange(len(self.players))
            self._set_state("playing")

            starter = self.current_player()
            self._log(f"Game started! {starter.name}'s turn.")
            logger.info("shed room %s: game started with %d seats", self.id, len(self.players))
            self.broadcast("game:started", {"currentPlayerId": starter.id, "topCard": opening.to_json()})
            self._after_turn_change()
            return ok()

    def _advance(self) -> None:
        self.current_index = advance_turn(self.seats, self.current_index, self.direction)

    def _after_turn_change(self) -> None:
        if self.state != "playing":
            return
        current = self.current_player()
        self.broadcast("game:turn", {"currentPlayerId": current.id, "direction": self.direction})
        if current.is_bot:
            self.schedule("bot", self.bot_delay, self._run_bot_turn, current.id)

    def _turn_error(self, player_id: str) -> dict[str, Any] | None:
        if self.state != "playing":
            return fail("Game not in progress")
        current = self.current_player()
        if current is None or current.id != player_id:
            return fail("Not your turn")
        return None

    def play_card(self, player_id: str, card_id: str, chosen_suit: str | None = None) -> dict[str, Any]:
        with self.lock:
            error = self._turn_error(player_id)
            if error:
                return error

            player = self.current_player()
            card = next((c for c in player.hand if c.id == card_id), None)
            if card is None:
                return fail("Card not in hand")
            if not can_play_card(card, self.top_card(), self.chosen_suit, self.pending_draws):
                return fail("Cannot play this card")
            # Nothing has moved yet, so a wild without a suit leaves the room untouched.
            if card.effect == "wild" and chosen_suit not in SUITS:
                return fail("Must choose a suit", needsSuit=True)

            player.hand.remove(card)
            self.discard_pile.append(card)
            self.chosen_suit = None

            effect = card.effect
            player.game_stats["cardsPlayed"] += 1
            if effect:
                player.game_stats["specialCardsPlayed"] += 1

            if effect in DRAW_PENALTY:
                penalty = DRAW_PENALTY[effect]
                self.pending_draws += penalty
                player.game_stats["drawsForced"] += penalty
                self._log(f"{player.name} played {card.label()}. Next player must draw {self.pending_draws} or stack!")
            elif effect == "playAgain":
                self._log(f"{player.name} played {card.label()} and plays again!")
            elif effect == "skip":
                self._log(f"{player.name} played {card.label()}. Next player is skipped!")
            elif effect == "wild":
                self.chosen_suit = chosen_suit
                self._log(f"{player.name} played Jack and chose {chosen_suit}!")
            elif effect == "reverse":
                self.direction = reverse_direction(self.direction)
                way = "clockwise" if self.direction == 1 else "counter-clockwise"
                self._log(f"{player.name} played {card.label()}. Direction reversed to {way}!")
            else:
                self._log(f"{player.name} played {card.label()}.")

            self.broadcast(
                "game:cardPlayed",
                {"playerId": player.id, "card": card.to_json(), "effect": effect, "chosenSuit": self.chosen_suit},
            )

            if not player.hand:
                self._finish(player.id)
                return ok(effect=effect, gameOver=True, winner={"id": player.id, "name": player.name})

            if effect != "playAgain":
                if effect == "skip":
                    self._advance()
                self._advance()
            self._after_turn_change()
            return ok(effect=effect, gameOver=False)

    def draw_card(self, player_id: str) -> dict[str, Any]:
        with self.lock:
            error = self._turn_error(player_id)
            if error:
                return error

            player = self.current_player()
            available = len(self.deck) + max(0, len(self.discard_pile) - 1)
            if available == 0:
                return fail("No cards left to draw")

            wanted = self.pending_draws if self.pending_draws > 0 else 1
            drawn: list[Card] = []
            for _ in range(min(wanted, available)):
                if not self.deck:
                    top = self.discard_pile.pop()
                    self.deck = shuffle_deck(self.discard_pile, self.rng)
                    self.discard_pile = [top]
                    self._log("Deck reshuffled from discard pile.")
                drawn.append(self.deck.pop())

            player.hand.extend(drawn)
            player.game_stats["cardsDrawn"] += len(drawn)
            if self.pending_draws > 0:
                self._log(f"{player.name} drew {len(drawn)} cards.")
                self.pending_draws = 0
            else:
                self._log(f"{player.name} drew a card.")

            self.broadcast("game:cardDrawn", {"playerId": player.id, "count": len(drawn)})
            self._advance()
            self._after_turn_change()
            return ok(drawnCards=[c.to_json() for c in drawn])

    def _run_bot_turn(self, bot_id: str) -> None:
        current = self.current_player()
        if self.state != "playing" or current is None or current.id != bot_id:
            return

        move = choose_bot_move(current.hand, self.top_card(), self.chosen_suit, self.pending_draws, self.rng)
        if move.action == "play":
            result = self.play_card(bot_id, move.card_id, move.chosen_suit)
            if result["success"]:
                return
            logger.warning("shed room %s: bot %s move rejected (%s), drawing", self.id, bot_id, result["error"])

        result = self.draw_card(bot_id)
        if not result["success"]:
            # Nothing to draw either: pass the turn rather than stall the table.
            self._advance()
            self._after_turn_change()

    def _finish(self, winner_id: str | None, reason: str | None = None) -> None:
        self.cancel_all()
        self.winner_id = winner_id
        self.end_reason = reason
        self._set_state("finished")

        winner = self.players.get(winner_id) if winner_id else None
        if winner is not None:
            self._log(f"{winner.name} wins!")
            if self.stats is not None:
                for p in self.humans():
                    self.stats.record_game(p.id, p.name, won=p.id == winner_id, **p.game_stats)

        logger.info("shed room %s: game finished (%s), winner=%s", self.id, reason or "won", winner.name if winner else None)
        self.broadcast(
            "game:end",
            {"winner": {"id": winner.id, "name": winner.name} if winner else None, "reason": reason},
        )

    def reset_game(self, requester_id: str) -> dict[str, Any]:
        with self.lock:
            if requester_id != self.host_id:
                return fail("Only the host can reset the game")
            if self.state != "finished":
                return fail("Game is not finished")

            self._set_state("waiting")
            self.deck = []
            self.discard_pile = []
            self.current_index = 0
            self.direction = 1
            self.chosen_suit = None
            self.pending_draws = 0
            self.winner_id = None
            self.end_reason = None

            for pid in [pid for pid, p in self.players.items() if not p.connected]:
                del self.players[pid]
            for pid in [pid for pid, s in self.spectators.items() if not s.connected]:
                del self.spectators[pid]
            self._promote_spectators(self.max_players)
            for p in self.players.values():
                p.hand = []
                p.game_stats = new_game_stats()
            if self.host_id not in self.players:
                self._reassign_host(self.host_id)

            self.broadcast("room:reset", {"players": self.player_list(), "spectators": self.spectator_list()})
            return ok()

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
                "maxPlayers": self.max_players,
                "players": [{"name": p.name, "avatar": p.avatar, "isBot": p.is_bot} for p in self.players.values()],
            }

    def get_state(self, for_player_id: str | None = None) -> dict[str, Any]:
        with self.lock:
            top = self.top_card()
            winner = self.players.get(self.winner_id) if self.winner_id else None
            current = self.current_player() if self.state == "playing" else None
            players = []
            for index, p in enumerate(self.players.values()):
                entry = p.to_json()
                entry["isCurrentTurn"] = current is not None and index == self.current_index % len(self.players)
                if p.id == for_player_id:
                    entry["hand"] = [c.to_json() for c in p.hand]
                players.append(entry)

            return {
                "id": self.id,
                "name": self.name,
                "hostId": self.host_id,
                "maxPlayers": self.max_players,
                "state": self.state,
                "currentPlayerIndex": self.current_index,
                "currentPlayerId": current.id if current else None,
                "direction": self.direction,
                "chosenSuit": self.chosen_suit,
                "pendingDraws": self.pending_draws,
                "topCard": top.to_json() if top else None,
                "deckCount": len(self.deck),
                "gameLog": self.game_log[-LOG_VISIBLE:],
                "winner": {"id": winner.id, "name": winner.name} if winner else None,
                "endReason": self.end_reason,
                "players": players,
                "spectators": self.spectator_list(),
            }


class ShedManager(RoomManager[ShedRoom]):
    id_prefix = "shed"

    def __init__(
        self,
        scheduler: Scheduler,
        stats: ShedStats,
        bot_delay: float = BOT_DELAY_SEC,
        rng: random.Random | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scheduler, stats, **kwargs)
        self.bot_delay = bot_delay
        self.rng = rng

    def is_listed(self, room: ShedRoom) -> bool:
        return room.state == "waiting"

    def build_room(self, room_id, name, host_id, host_name, host_avatar, settings):
        room = ShedRoom(
            room_id,
            name or f"{host_name}'s table",
            host_id,
            self.scheduler,
            self.stats,
            max_players=settings.get("maxPlayers", settings.get("max_players", DEFAULT_MAX_PLAYERS)),
            bot_delay=self.bot_delay,
            rng=self.rng,
        )
        room.add_player(host_id, host_name, host_avatar)
        return room
