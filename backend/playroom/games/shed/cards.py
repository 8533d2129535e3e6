"""Deck model for the card-shedding game: 52 cards plus two jokers."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

SUITS = ("hearts", "diamonds", "clubs", "spades")
RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
JOKER = "joker"

SPECIAL_EFFECTS = {
    "2": "draw2",
    "7": "playAgain",
    "8": "skip",
    "J": "wild",
    "A": "reverse",
    JOKER: "draw5",
}

DRAW_PENALTY = {"draw2": 2, "draw5": 5}


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str
    id: str

    @property
    def is_joker(self) -> bool:
        return self.rank == JOKER

    @property
    def effect(self) -> str | None:
        return SPECIAL_EFFECTS.get(self.rank)

    @property
    def is_special(self) -> bool:
        return self.effect is not None

    def label(self) -> str:
        return "Joker" if self.is_joker else f"{self.rank} of {self.suit}"

    def to_json(self) -> dict[str, Any]:
        return {"suit": self.suit, "rank": self.rank, "id": self.id}


def create_deck() -> list[Card]:
    deck = [Card(suit, rank, f"{rank}_{suit}") for suit in SUITS for rank in RANKS]
    deck.append(Card(JOKER, JOKER, "joker_1"))
    deck.append(Card(JOKER, JOKER, "joker_2"))
    return deck


def shuffle_deck(deck: list[Card], rng: random.Random | None = None) -> list[Card]:
    shuffled = list(deck)
    (rng or random).shuffle(shuffled)
    return shuffled


def draw_opening_card(deck: list[Card], rng: random.Random | None = None) -> Card:
    """Pop cards until a plain one turns up; specials go back and the deck is reshuffled."""
    if all(card.is_special for card in deck):
        raise ValueError("deck holds no plain card to open with")
    while True:
        card = deck.pop()
        if not card.is_special:
            return card
        deck.insert(0, card)
        (rng or random).shuffle(deck)
