from __future__ import annotations

from typing import Any

from ...core.stats import MIN_RATED_GAMES, StatsStore, percent, round_half_up


class TimelineStats(StatsStore):
    counters = ("cardsWon", "correctPlacements", "wrongPlacements", "successfulSteals", "failedSteals")

    def record_attempt(self, player_id: str, display_name: str, correct: bool, steal: bool) -> None:
        if steal:
            key = "successfulSteals" if correct else "failedSteals"
        else:
            key = "correctPlacements" if correct else "wrongPlacements"
        counters = {key: 1}
        if correct:
            counters["cardsWon"] = 1
        self.record_event(player_id, display_name, **counters)

    def derive(self, record: dict[str, Any]) -> dict[str, Any]:
        games = record["gamesPlayed"]
        placements = record["correctPlacements"] + record["wrongPlacements"]
        steals = record["successfulSteals"] + record["failedSteals"]

        win_ratio = record["gamesWon"] / games if games > 0 else 0
        placement_ratio = record["correctPlacements"] / placements if placements > 0 else 0
        steal_ratio = record["successfulSteals"] / steals if steals > 0 else 0
        win_rate = percent(record["gamesWon"], games)

        if games >= MIN_RATED_GAMES:
            skill = round_half_up(
                win_ratio * 40 + placement_ratio * 30 + steal_ratio * 20 + min(record["cardsWon"] / 10, 10)
            )
        else:
            skill = win_rate

        return {
            "placementRate": percent(record["correctPlacements"], placements),
            "stealRate": percent(record["successfulSteals"], steals),
            "winRate": win_rate,
            "skillRating": skill,
        }
