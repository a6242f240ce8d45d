"""Player profile - rolls per-game metrics up across a player's history."""
from datetime import datetime, timezone
from typing import List, Optional

from exam_analyzer.metrics import calculate_training_transfer_score, clamp_score, player_lost, player_won
from exam_analyzer.models import (
    CompositeScores, GameMetrics, OverallStats, PlayerProfile, PlayerRecords, PlayerTrends,
)

TREND_WINDOW = 10
TREND_MARGIN = 2.0  # accuracy points
BLUNDER_TREND_MARGIN = 0.5  # blunders per game


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _outcome(metrics: GameMetrics) -> str:
    if player_won(metrics.result, metrics.player_color):
        return "win"
    if player_lost(metrics.result, metrics.player_color):
        return "loss"
    return "draw"


def calculate_records(history: List[GameMetrics]) -> PlayerRecords:
    outcomes = [_outcome(m) for m in history]
    total = len(outcomes)
    if total == 0:
        return PlayerRecords()

    longest = {"win": 0, "loss": 0}
    run_type, run_length = None, 0
    for outcome in outcomes:
        if outcome == run_type:
            run_length += 1
        else:
            run_type, run_length = outcome, 1
        if outcome in longest:
            longest[outcome] = max(longest[outcome], run_length)

    return PlayerRecords(
        win_rate=outcomes.count("win") / total * 100,
        draw_rate=outcomes.count("draw") / total * 100,
        loss_rate=outcomes.count("loss") / total * 100,
        longest_win_streak=longest["win"],
        longest_lose_streak=longest["loss"],
        current_streak=run_length,
        current_streak_type=run_type,
    )


def calculate_trends(history: List[GameMetrics]) -> PlayerTrends:
    """Compare the last ten games with the ten before them."""
    accuracies = [m.precision.overall_accuracy for m in history]
    blunders = [m.precision.blunders for m in history]

    recent = accuracies[-TREND_WINDOW:]
    previous = accuracies[-2 * TREND_WINDOW:-TREND_WINDOW]
    accuracy_trend = "stable"
    blunder_trend = "stable"

    if previous:
        change = _mean(recent) - _mean(previous)
        if change > TREND_MARGIN:
            accuracy_trend = "improving"
        elif change < -TREND_MARGIN:
            accuracy_trend = "declining"

        blunder_change = _mean(blunders[-TREND_WINDOW:]) - _mean(
            blunders[-2 * TREND_WINDOW:-TREND_WINDOW]
        )
        if blunder_change > BLUNDER_TREND_MARGIN:
            blunder_trend = "increasing"
        elif blunder_change < -BLUNDER_TREND_MARGIN:
            blunder_trend = "decreasing"

    return PlayerTrends(
        last_10_games_accuracy=round(_mean(recent), 1),
        last_30_games_accuracy=round(_mean(accuracies[-30:]), 1),
        accuracy_trend=accuracy_trend,
        blunder_trend=blunder_trend,
    )


def average_composite_scores(history: List[GameMetrics]) -> CompositeScores:
    """Per-score mean over the games; training transfer from the accuracy series."""
    if not history:
        return CompositeScores()

    fields = [
        "precision", "tactical_danger", "stability", "conversion",
        "preparation", "positional", "aggression", "simplification",
    ]
    averages = {
        name: clamp_score(_mean([getattr(m.composite_scores, name) for m in history]))
        for name in fields
    }
    return CompositeScores(
        **averages,
        training_transfer=calculate_training_transfer_score(
            [m.precision.overall_accuracy for m in history]
        ),
    )


def build_player_profile(
    history: List[GameMetrics],
    total_games: Optional[int] = None,
) -> PlayerProfile:
    """Profile from the metrics of analysed games, oldest first."""
    count = len(history)
    overall_stats = OverallStats()
    if count:
        overall_stats = OverallStats(
            average_accuracy=_mean([m.precision.overall_accuracy for m in history]),
            average_centipawn_loss=_mean([m.precision.average_cpl for m in history]),
            blunders_per_game=_mean([m.precision.blunders for m in history]),
            mistakes_per_game=_mean([m.precision.mistakes for m in history]),
            inaccuracies_per_game=_mean([m.precision.inaccuracies for m in history]),
        )

    return PlayerProfile(
        last_updated=datetime.now(timezone.utc).isoformat(),
        total_games=total_games if total_games is not None else count,
        games_analyzed=count,
        composite_scores=average_composite_scores(history),
        overall_stats=overall_stats,
        records=calculate_records(history),
        trends=calculate_trends(history),
    )
