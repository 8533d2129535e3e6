from __future__ import annotations

import random
from collections import Counter
from typing import NamedTuple, Sequence

from .cards import SUITS, Card
from .rules import can_play_card

SPECIAL_PREFERENCE = 0.7


class BotMove(NamedTuple):
    action: str
    card_id: str | None = None
    chosen_suit: str | None = None


def pick_suit(hand: Sequence[Card]) -> str:
    counts = Counter(card.suit for card in hand if not card.is_joker)
    if not counts:
        return SUITS[0]
    return counts.most_common(1)[0][0]


def choose_bot_move(
    hand: Sequence[Card],
    top: Card,
    chosen_suit: str | None,
    pending_draws: int,
    rng: random.Random | None = None,
) -> BotMove:
    rng = rng or random
    playable = [card for card in hand if can_play_card(card, top, chosen_suit, pending_draws)]
    if not playable:
        return BotMove("draw")

    if pending_draws > 0:
        stackable = [card for card in playable if card.rank == "2" or card.is_joker]
        if not stackable:
            return BotMove("draw")
        return BotMove("play", rng.choice(stackable).id)

    specials = [card for card in playable if card.is_special]
    if specials and rng.random() < SPECIAL_PREFERENCE:
        card = rng.choice(specials)
    else:
        card = rng.choice(playable)

    suit = pick_suit(hand) if card.rank == "J" else None
    return BotMove("play", card.id, suit)
