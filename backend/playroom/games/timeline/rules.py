from __future__ import annotations

from typing import Sequence


def is_correct_placement(years: Sequence[int], year: int, position: int) -> bool:
    """True when ``year`` fits between its would-be neighbours.

    ``years`` is the player's timeline, already sorted ascending. Equal years
    are allowed on either side.
    """
    if position < 0 or position > len(years):
        return False
    if position > 0 and years[position - 1] > year:
        return False
    if position < len(years) and years[position] < year:
        return False
    return True
