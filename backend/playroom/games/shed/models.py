from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ...core.room import Participant
from .cards import Card


RoomState = Literal["waiting", "playing", "finished"]

MIN_PLAYERS = 2
MAX_PLAYERS = 8
DEFAULT_MAX_PLAYERS = 4
HAND_SIZE = 7
LOG_LIMIT = 50
LOG_VISIBLE = 10
BOT_DELAY_SEC = 1.5
BOT_NAMES = ("Bot Alex", "Bot Sam", "Bot Max", "Bot Robin", "Bot Charlie", "Bot Jordan")


def clamp_max_players(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        return DEFAULT_MAX_PLAYERS
    return min(max(value, MIN_PLAYERS), MAX_PLAYERS)


def new_game_stats() -> dict[str, int]:
    return {"cardsPlayed": 0, "specialCardsPlayed": 0, "drawsForced": 0, "cardsDrawn": 0}


@dataclass
class Player(Participant):
    hand: list[Card] = field(default_factory=list)
    is_bot: bool = False
    game_stats: dict[str, int] = field(default_factory=new_game_stats)

    def to_json(self) -> dict[str, Any]:
        payload = super().to_json()
        payload["isBot"] = self.is_bot
        payload["cardCount"] = len(self.hand)
        return payload
