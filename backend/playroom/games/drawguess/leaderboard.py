from __future__ import annotations

from typing import Any

from ...core.stats import MIN_RATED_GAMES, StatsStore, percent, round_half_up


class DrawGuessStats(StatsStore):
    counters = ("totalPoints", "correctGuesses", "roundsDrawn", "successfulDrawings")

    def derive(self, record: dict[str, Any]) -> dict[str, Any]:
        games = record["gamesPlayed"]
        win_rate = percent(record["gamesWon"], games)
        avg_points = round_half_up(record["totalPoints"] / games) if games > 0 else 0
        draw_success_rate = percent(record["successfulDrawings"], record["roundsDrawn"])

        # Average points carry the most weight; wins add on top.
        if games >= MIN_RATED_GAMES:
            skill = round_half_up(avg_points * 0.7 + win_rate * 2 + draw_success_rate * 0.5)
        else:
            skill = avg_points

        return {
            "winRate": win_rate,
            "avgPoints": avg_points,
            "drawSuccessRate": draw_success_rate,
            "skillRating": skill,
        }
