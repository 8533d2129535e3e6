"""Cumulative per-player statistics persisted as JSON.

The in-memory map is the source of truth between flushes. Storage problems
are logged and swallowed: losing a leaderboard write must never stop a game.
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
import time
from pathlib import Path
from threading import RLock
from typing import Any

from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

MIN_RATED_GAMES = 3
BOT_ID_PREFIX = "bot_"


def is_bot_id(player_id: str) -> bool:
    return player_id.startswith(BOT_ID_PREFIX)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(part: float, whole: float) -> int:
    return round_half_up(part / whole * 100) if whole > 0 else 0


class StatsStore:
    """Base store. Subclasses name their counters and leaderboard formula."""

    counters: tuple[str, ...] = ()

    def __init__(self, path: str | Path, scheduler: Scheduler | None = None, debounce_sec: float = 5.0) -> None:
        self.path = Path(path)
        self.scheduler = scheduler
        self.debounce_sec = debounce_sec if scheduler is not None else 0
        self._lock = RLock()
        self._pending: TimerHandle | None = None
        self.players: dict[str, dict[str, Any]] = self.load()

    # -- storage ------------------------------------------------------------

    def load(self) -> dict[str, dict[str, Any]]:
        try:
            if not self.path.exists():
                return {}
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.exception("could not load stats from %s, starting empty", self.path)
            return {}

        players = data.get("players") if isinstance(data, dict) else None
        if not isinstance(players, dict):
            logger.warning("stats file %s has no players map, starting empty", self.path)
            return {}
        return {str(pid): rec for pid, rec in players.items() if isinstance(rec, dict)}

    def save(self) -> bool:
        with self._lock:
            snapshot = {"players": {pid: dict(rec) for pid, rec in self.players.items()}}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(snapshot, fh, indent=2, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError:
            logger.exception("could not save stats to %s", self.path)
            return False
        return True

    def schedule_save(self) -> None:
        if self.debounce_sec <= 0:
            self.save()
            return

        with self._lock:
            if self._pending is not None and self._pending.active:
                return
            self._pending = self.scheduler.call_later(self.debounce_sec, self._flush_pending)

    def _flush_pending(self) -> None:
        with self._lock:
            self._pending = None
        self.save()

    def flush(self) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
        self.save()

    # -- mutation -----------------------------------------------------------

    def new_record(self, display_name: str) -> dict[str, Any]:
        record: dict[str, Any] = {
            "displayName": display_name,
            "gamesPlayed": 0,
            "gamesWon": 0,
            "winStreak": 0,
            "bestWinStreak": 0,
            "lastPlayed": None,
        }
        for name in self.counters:
            record[name] = 0
        return record

    def _record_for(self, player_id: str, display_name: str) -> dict[str, Any]:
        record = self.players.get(player_id)
        if record is None:
            record = self.new_record(display_name)
            self.players[player_id] = record
        record["displayName"] = display_name
        record["lastPlayed"] = int(time.time() * 1000)
        return record

    def _merge(self, record: dict[str, Any], counters: dict[str, int]) -> None:
        for name, amount in counters.items():
            record[name] = (record.get(name) or 0) + (amount or 0)

    def record_event(self, player_id: str, display_name: str, **counters: int) -> None:
        if is_bot_id(player_id):
            return
        with self._lock:
            self._merge(self._record_for(player_id, display_name), counters)
        self.schedule_save()

    def record_game(self, player_id: str, display_name: str, won: bool, **counters: int) -> None:
        if is_bot_id(player_id):
            return
        with self._lock:
            record = self._record_for(player_id, display_name)
            record["gamesPlayed"] = (record.get("gamesPlayed") or 0) + 1
            self._merge(record, counters)
            if won:
                record["gamesWon"] = (record.get("gamesWon") or 0) + 1
                record["winStreak"] = (record.get("winStreak") or 0) + 1
                record["bestWinStreak"] = max(record.get("bestWinStreak") or 0, record["winStreak"])
            else:
                record["winStreak"] = 0
        self.schedule_save()

    def get(self, player_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self.players.get(player_id)
            return dict(record) if record is not None else None

    # -- leaderboard --------------------------------------------------------

    def derive(self, record: dict[str, Any]) -> dict[str, Any]:
        """Return derived rates plus ``skillRating`` for one record."""
        games = record.get("gamesPlayed") or 0
        win_rate = percent(record.get("gamesWon") or 0, games)
        return {"winRate": win_rate, "skillRating": win_rate}

    def get_leaderboard(self, top_n: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            records = [(pid, dict(rec)) for pid, rec in self.players.items()]

        entries = []
        for pid, record in records:
            for name in ("gamesPlayed", "gamesWon", "winStreak", "bestWinStreak", *self.counters):
                record[name] = record.get(name) or 0
            entries.append({"id": pid, **record, **self.derive(record)})

        entries.sort(key=lambda e: (e["skillRating"], e["gamesPlayed"]), reverse=True)
        return entries[:top_n]
