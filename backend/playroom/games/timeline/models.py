from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ...core.content import Song
from ...core.room import Participant


TurnPhase = Literal["listening", "placing", "stealing", "reveal"]

MIN_PLAYERS = 2
CARDS_TO_WIN = 10
LISTEN_TIME_SEC = 30
PLACE_TIME_SEC = 30
STEAL_TIME_SEC = 15
MAX_PLAYERS = 8
REVEAL_DELAY_SEC = 4
RESET_DELAY_SEC = 10


@dataclass
class Player(Participant):
    timeline: list[Song] = field(default_factory=list)
    score: int = 0

    def years(self) -> list[int]:
        return [song.year for song in self.timeline]

    def to_json(self) -> dict[str, Any]:
        payload = super().to_json()
        payload["score"] = self.score
        payload["timelineCount"] = len(self.timeline)
        return payload


@dataclass
class RoomSettings:
    cards_to_win: int = CARDS_TO_WIN
    listen_time: int = LISTEN_TIME_SEC
    place_time: int = PLACE_TIME_SEC
    steal_time: int = STEAL_TIME_SEC
    max_players: int = MAX_PLAYERS

    @classmethod
    def from_dict(cls, raw: dict[str, Any], cards_to_win: int = CARDS_TO_WIN) -> "RoomSettings":
        def pick(camel: str, snake: str, default: int, low: int, high: int) -> int:
            value = raw.get(camel, raw.get(snake))
            if isinstance(value, int) and not isinstance(value, bool) and low <= value <= high:
                return value
            return default

        return cls(
            cards_to_win=pick("cardsToWin", "cards_to_win", cards_to_win, 1, 50),
            listen_time=pick("listenTime", "listen_time", LISTEN_TIME_SEC, 5, 120),
            place_time=pick("placeTime", "place_time", PLACE_TIME_SEC, 5, 120),
            steal_time=pick("stealTime", "steal_time", STEAL_TIME_SEC, 5, 60),
            max_players=pick("maxPlayers", "max_players", MAX_PLAYERS, MIN_PLAYERS, 16),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "cardsToWin": self.cards_to_win,
            "listenTime": self.listen_time,
            "placeTime": self.place_time,
            "stealTime": self.steal_time,
            "maxPlayers": self.max_players,
        }
