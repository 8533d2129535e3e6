from __future__ import annotations

from .cards import Card


def can_play_card(card: Card, top: Card, chosen_suit: str | None, pending_draws: int) -> bool:
    # A pending draw can only be passed on: 2 on 2, 2 on joker, joker on either.
    if pending_draws > 0 and (top.rank == "2" or top.is_joker):
        if top.rank == "2" and card.rank == "2":
            return True
        if card.is_joker:
            return True
        if top.is_joker and card.rank == "2":
            return True
        return False

    if card.is_joker or card.rank == "J":
        return True

    if chosen_suit:
        return card.suit == chosen_suit

    return card.suit == top.suit or card.rank == top.rank
