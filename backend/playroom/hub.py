from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from .core.content import SongPool, WordPool
from .core.room import RoomManager
from .core.scheduler import Scheduler
from .games.drawguess.leaderboard import DrawGuessStats
from .games.drawguess.session import DrawGuessManager
from .games.shed.leaderboard import ShedStats
from .games.shed.session import ShedManager
from .games.timeline.leaderboard import TimelineStats
from .games.timeline.session import TimelineManager

logger = logging.getLogger(__name__)


class GameHub:
    """The three game managers of one app, keyed by their URL/event name."""

    def __init__(self, drawguess: DrawGuessManager, timeline: TimelineManager, shed: ShedManager) -> None:
        self.drawguess = drawguess
        self.timeline = timeline
        self.shed = shed
        self.games: dict[str, RoomManager] = {
            "drawguess": drawguess,
            "timeline": timeline,
            "shed": shed,
        }

    @classmethod
    def from_config(cls, config: Mapping[str, Any], scheduler: Scheduler) -> "GameHub":
        data_dir = Path(config["DATA_DIR"])
        debounce = float(config.get("STATS_DEBOUNCE_SEC", 5))
        size = int(config.get("LEADERBOARD_SIZE", 20))

        words = WordPool.from_file(data_dir / "drawguess_words.json")
        songs = SongPool.from_file(data_dir / "timeline_songs.json")
        logger.info("content loaded: %d word languages, %d songs", len(words.languages()), len(songs))

        drawguess = DrawGuessManager(
            scheduler,
            DrawGuessStats(data_dir / "drawguess_leaderboard.json", scheduler, debounce),
            words,
            min_players=int(config.get("DRAWGUESS_MIN_PLAYERS", 2)),
            round_time=int(config.get("DRAWGUESS_ROUND_TIME_SEC", 80)),
            leaderboard_size=size,
        )
        timeline = TimelineManager(
            scheduler,
            TimelineStats(data_dir / "timeline_leaderboard.json", scheduler, debounce),
            songs,
            cards_to_win=int(config.get("TIMELINE_CARDS_TO_WIN", 10)),
            leaderboard_size=size,
        )
        # Shed results are written as soon as a game ends.
        shed = ShedManager(
            scheduler,
            ShedStats(data_dir / "shed_leaderboard.json", scheduler, debounce_sec=0),
            bot_delay=float(config.get("SHED_BOT_DELAY_SEC", 1.5)),
            leaderboard_size=size,
        )
        return cls(drawguess, timeline, shed)

    def get(self, game: str) -> RoomManager | None:
        return self.games.get(game)

    def start_sweepers(self, interval: float) -> None:
        for manager in self.games.values():
            manager.registry.start_sweeper(interval)

    def shutdown(self) -> None:
        for name, manager in self.games.items():
            logger.info("shutting down %s", name)
            manager.shutdown()
