from __future__ import annotations

from typing import Any

from ...core.stats import MIN_RATED_GAMES, StatsStore, percent, round_half_up


class ShedStats(StatsStore):
    counters = ("cardsPlayed", "specialCardsPlayed", "drawsForced", "cardsDrawn")

    def derive(self, record: dict[str, Any]) -> dict[str, Any]:
        games = record["gamesPlayed"]
        win_rate = percent(record["gamesWon"], games)
        avg_cards_played = round_half_up(record["cardsPlayed"] / games) if games > 0 else 0
        special_card_rate = percent(record["specialCardsPlayed"], record["cardsPlayed"])
        avg_draws_forced = round_half_up(record["drawsForced"] / games * 10) / 10 if games > 0 else 0

        # Wins first, then aggression (draws forced), then efficiency (few cards drawn).
        if games >= MIN_RATED_GAMES:
            skill = round_half_up(
                win_rate * 0.5
                + min(avg_draws_forced * 5, 25)
                + special_card_rate * 0.2
                + max(0, 20 - record["cardsDrawn"] / games)
            )
        else:
            skill = win_rate

        return {
            "winRate": win_rate,
            "avgCardsPlayed": avg_cards_played,
            "specialCardRate": special_card_rate,
            "avgDrawsForced": avg_draws_forced,
            "skillRating": skill,
        }
