"""Guess checking, scoring and hint masks for the draw-and-guess game."""

from __future__ import annotations

import math
import random
from typing import Iterable, NamedTuple

from .models import HINT_FRACTIONS


class GuessResult(NamedTuple):
    correct: bool
    close: bool


def normalize(text: str) -> str:
    return (text or "").strip().casefold()


def check_guess(guess: str, word: str) -> GuessResult:
    """Exact match after trim + case-fold, or "close".

    Close is a position-wise comparison, not an edit distance: lengths within
    2 of each other, at most 2 positions differing, guess at least 3 long.
    """
    g = normalize(guess)
    w = normalize(word)
    if g == w:
        return GuessResult(correct=True, close=False)

    if abs(len(g) - len(w)) <= 2:
        differences = 0
        for i in range(max(len(g), len(w))):
            a = g[i] if i < len(g) else None
            b = w[i] if i < len(w) else None
            if a != b:
                differences += 1
        if differences <= 2 and len(g) >= 3:
            return GuessResult(correct=False, close=True)

    return GuessResult(correct=False, close=False)


def calculate_guesser_score(time_elapsed: float, is_first: bool) -> int:
    base = max(100, 500 - int(time_elapsed) * 5)
    return base + 50 if is_first else base


def letter_positions(word: str) -> list[int]:
    return [i for i, ch in enumerate(word) if ch != " "]


def blank_hint(word: str) -> str:
    return "".join(" " if ch == " " else "_" for ch in word)


def render_hint(word: str, revealed: Iterable[int]) -> str:
    shown = set(revealed)
    return "".join(" " if ch == " " else (ch if i in shown else "_") for i, ch in enumerate(word))


def reveal_target(word: str, hint_number: int) -> int:
    """How many letters hint ``hint_number`` (1-based) shows. Never all of them."""
    letters = len(letter_positions(word))
    return max(0, min(math.ceil(letters * hint_number * 0.2), letters - 1))


def extend_reveal(word: str, revealed: set[int], target: int, rng: random.Random | None = None) -> set[int]:
    """Grow ``revealed`` with random unrevealed letters until it holds ``target``."""
    hidden = [i for i in letter_positions(word) if i not in revealed]
    needed = max(0, target - len(revealed))
    if needed:
        revealed.update((rng or random).sample(hidden, min(needed, len(hidden))))
    return revealed


def hint_offsets(round_time: float) -> list[float]:
    return [round_time * f for f in HINT_FRACTIONS]
