"""Seat rotation shared by the turn-based games."""

from __future__ import annotations

from typing import Protocol, Sequence


class Seat(Protocol):
    connected: bool


def step(index: int, direction: int, count: int) -> int:
    return (index + direction + count) % count


def advance_turn(players: Sequence[Seat], current_index: int, direction: int) -> int:
    """Return the next seat index after ``current_index``.

    Disconnected seats are skipped, at most ``len(players)`` of them. When
    nobody is connected the result is just some seat; callers that care must
    check for that themselves.
    """
    count = len(players)
    if count == 0:
        return 0

    index = step(current_index, direction, count)
    attempts = 0
    while not players[index].connected and attempts < count:
        index = step(index, direction, count)
        attempts += 1
    return index


def reverse_direction(direction: int) -> int:
    return -direction
