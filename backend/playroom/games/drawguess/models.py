from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ...core.room import Participant


RoomState = Literal["waiting", "choosing", "playing", "between_rounds", "ended"]

ROUND_TIME_SEC = 80
MAX_PLAYERS = 8
ROUNDS_PER_GAME = 3
WORD_CHOICES_COUNT = 3
WORD_CHOICE_TIMEOUT_SEC = 10
HINT_FRACTIONS = (0.25, 0.5, 0.75)
NEXT_ROUND_DELAY_SEC = 5
GAME_OVER_DELAY_SEC = 3
RESET_DELAY_SEC = 10
CUSTOM_WORD_CHANCE = 0.3
DRAWER_BONUS = 25
MAX_DRAW_HISTORY = 50


@dataclass
class Player(Participant):
    score: int = 0
    has_guessed: bool = False

    def to_json(self) -> dict[str, Any]:
        payload = super().to_json()
        payload["score"] = self.score
        payload["hasGuessedThisRound"] = self.has_guessed
        return payload


@dataclass
class RoomSettings:
    rounds: int = ROUNDS_PER_GAME
    difficulty: str = "medium"
    language: str = "en"
    max_players: int = MAX_PLAYERS
    round_time: int = ROUND_TIME_SEC
    custom_words: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any], round_time: int = ROUND_TIME_SEC) -> "RoomSettings":
        settings = cls(round_time=round_time)
        settings.update(raw)
        return settings

    def update(self, raw: dict[str, Any]) -> list[str]:
        """Apply known keys, ignoring junk. Returns the keys that changed."""
        changed = []
        rounds = raw.get("rounds")
        if isinstance(rounds, int) and 1 <= rounds <= 20:
            self.rounds = rounds
            changed.append("rounds")

        for key in ("difficulty", "language"):
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                setattr(self, key, value.strip())
                changed.append(key)

        max_players = raw.get("maxPlayers", raw.get("max_players"))
        if isinstance(max_players, int) and 2 <= max_players <= 16:
            self.max_players = max_players
            changed.append("maxPlayers")

        round_time = raw.get("roundTime", raw.get("round_time"))
        if isinstance(round_time, int) and 10 <= round_time <= 300:
            self.round_time = round_time
            changed.append("roundTime")

        custom = raw.get("customWords", raw.get("custom_words"))
        if isinstance(custom, list):
            self.custom_words = [w.strip() for w in custom if isinstance(w, str) and w.strip()]
            changed.append("customWords")
        return changed

    def to_json(self) -> dict[str, Any]:
        return {
            "rounds": self.rounds,
            "difficulty": self.difficulty,
            "language": self.language,
            "maxPlayers": self.max_players,
            "roundTime": self.round_time,
            "customWordCount": len(self.custom_words),
        }


@dataclass
class CorrectGuess:
    player_id: str
    name: str
    score: int
    time_elapsed: int

    def to_json(self) -> dict[str, Any]:
        return {"playerId": self.player_id, "name": self.name, "score": self.score, "timeElapsed": self.time_elapsed}


@dataclass
class DrawingStats:
    rounds_drawn: int = 0
    successful_drawings: int = 0
