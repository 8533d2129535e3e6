"""Static content pools: drawing words and timeline songs.

Loaded once and shared read-only by every room.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_WORDS: dict[str, dict[str, list[str]]] = {
    "en": {
        "easy": ["cat", "dog", "house", "tree", "sun", "fish", "car", "apple", "ball", "moon"],
        "medium": ["bicycle", "rainbow", "umbrella", "guitar", "castle", "penguin", "volcano", "ladder"],
        "hard": ["philosophy", "gravity", "democracy", "nostalgia", "evolution", "orchestra"],
    },
    "nl": {
        "easy": ["kat", "hond", "huis", "boom", "zon", "vis", "auto", "appel", "bal", "maan"],
        "medium": ["fiets", "regenboog", "paraplu", "gitaar", "kasteel", "pinguin", "vulkaan", "ladder"],
        "hard": ["filosofie", "zwaartekracht", "democratie", "nostalgie", "evolutie", "orkest"],
    },
}


def load_json(path: str | Path, default: Any) -> Any:
    p = Path(path)
    try:
        if p.exists():
            with p.open("r", encoding="utf-8") as fh:
                return json.load(fh)
    except (OSError, ValueError):
        logger.exception("could not load %s, using built-in defaults", p)
    return default


class WordPool:
    """Words bucketed by language, then difficulty."""

    default_language = "en"
    default_difficulty = "medium"

    def __init__(self, words: dict[str, dict[str, list[str]]]) -> None:
        self.words: dict[str, dict[str, list[str]]] = {}
        for language, buckets in (words or {}).items():
            if not isinstance(buckets, dict):
                continue
            cleaned = {
                difficulty: [w.strip() for w in items if isinstance(w, str) and w.strip()]
                for difficulty, items in buckets.items()
                if isinstance(items, list)
            }
            cleaned = {k: v for k, v in cleaned.items() if v}
            if cleaned:
                self.words[language] = cleaned
        if not self.words:
            self.words = FALLBACK_WORDS

    @classmethod
    def from_file(cls, path: str | Path) -> "WordPool":
        return cls(load_json(path, FALLBACK_WORDS))

    def languages(self) -> list[str]:
        return list(self.words.keys())

    def bucket(self, difficulty: str, language: str) -> list[str]:
        by_language = self.words.get(language) or self.words.get(self.default_language) or next(iter(self.words.values()))
        return by_language.get(difficulty) or by_language.get(self.default_difficulty) or next(iter(by_language.values()))

    def random_word(self, difficulty: str, language: str, rng: random.Random | None = None) -> str:
        return (rng or random).choice(self.bucket(difficulty, language))


@dataclass(frozen=True)
class Song:
    id: str
    title: str
    artist: str
    year: int

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "artist": self.artist, "year": self.year}


class SongPool:
    def __init__(self, songs: list[Song]) -> None:
        self.songs = list(songs)

    @classmethod
    def from_file(cls, path: str | Path) -> "SongPool":
        data = load_json(path, {"songs": []})
        raw = data.get("songs", []) if isinstance(data, dict) else []
        songs = []
        for item in raw:
            try:
                songs.append(Song(id=str(item["id"]), title=str(item.get("title", "")), artist=str(item.get("artist", "")), year=int(item["year"])))
            except (KeyError, TypeError, ValueError):
                logger.warning("skipping malformed song entry: %r", item)
        if not songs:
            logger.warning("no songs loaded from %s", path)
        return cls(songs)

    def __len__(self) -> int:
        return len(self.songs)
