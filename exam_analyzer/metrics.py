"""
Game metrics and the nine composite scores.

Composite scores (0-100):
  precision        - accuracy and error avoidance
  tactical_danger  - tactics found versus missed
  stability        - rushed moves and blunders after blunders
  conversion       - winning won positions
  preparation      - opening accuracy and the evaluation out of the opening
  positional       - accuracy with a blunder penalty
  aggression       - style indicator, no heuristic yet (always 50)
  simplification   - style indicator, no heuristic yet (always 50)
  training_transfer - accuracy trend across games (50 for a single game)
"""
import math
from typing import List, Optional

from exam_analyzer.classifier import is_error
from exam_analyzer.config import AHEAD_THRESHOLD, BEHIND_THRESHOLD, WINNING_THRESHOLD
from exam_analyzer.models import (
    AnalyzedMove, Color, CompositeScores, GameAnalysis, GameMetrics, GamePhaseMetrics,
    GameResult, MoveClassification, PrecisionMetrics, StabilityMetrics, TacticalMetrics,
    TimeManagementMetrics,
)

NEUTRAL_SCORE = 50.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if not math.isfinite(value):
        return low
    return max(low, min(high, value))


def clamp_score(value: float) -> float:
    """Clamp to [0, 100] and round to one decimal."""
    return round(_clamp(value), 1)


def player_won(result: GameResult, player_color: Color) -> bool:
    return (result == "1-0" and player_color == "white") or (
        result == "0-1" and player_color == "black"
    )


def player_lost(result: GameResult, player_color: Color) -> bool:
    return (result == "0-1" and player_color == "white") or (
        result == "1-0" and player_color == "black"
    )


def was_winning(player_moves: List[AnalyzedMove]) -> bool:
    """Did the player ever start a move from a winning position?"""
    return any(m.evaluation_before >= WINNING_THRESHOLD for m in player_moves)


# ============================================
# Component metrics
# ============================================

def calculate_precision_metrics(
    analysis: GameAnalysis,
    player_moves: List[AnalyzedMove],
) -> PrecisionMetrics:
    if not player_moves:
        return PrecisionMetrics()

    counts = {classification: 0 for classification in MoveClassification}
    blunders_while_ahead = blunders_in_equal = blunders_while_behind = 0
    forced_errors = unforced_errors = 0
    first_inaccuracy_move = None

    for move in player_moves:
        counts[move.classification] += 1

        if move.classification == MoveClassification.BLUNDER:
            # Bucket by the position the blunder was played from
            if move.evaluation_before >= AHEAD_THRESHOLD:
                blunders_while_ahead += 1
                unforced_errors += 1
            elif move.evaluation_before <= BEHIND_THRESHOLD:
                blunders_while_behind += 1
                forced_errors += 1
            else:
                blunders_in_equal += 1
                unforced_errors += 1
        elif move.classification == MoveClassification.MISTAKE:
            if move.evaluation_before <= BEHIND_THRESHOLD:
                forced_errors += 1
            else:
                unforced_errors += 1

        if first_inaccuracy_move is None and is_error(move.classification):
            first_inaccuracy_move = move.move_number

    total_errors = forced_errors + unforced_errors
    total_cpl = sum(m.centipawn_loss for m in player_moves)
    summary = analysis.summary

    return PrecisionMetrics(
        overall_accuracy=summary.overall_accuracy,
        opening_accuracy=summary.opening_accuracy,
        middlegame_accuracy=summary.middlegame_accuracy,
        endgame_accuracy=summary.endgame_accuracy,
        average_cpl=round(total_cpl / len(player_moves)),
        blunders=counts[MoveClassification.BLUNDER],
        mistakes=counts[MoveClassification.MISTAKE],
        inaccuracies=counts[MoveClassification.INACCURACY],
        good_moves=counts[MoveClassification.GOOD],
        excellent_moves=counts[MoveClassification.EXCELLENT],
        blunders_while_ahead=blunders_while_ahead,
        blunders_in_equal=blunders_in_equal,
        blunders_while_behind=blunders_while_behind,
        forced_error_rate=forced_errors / total_errors if total_errors else 0.0,
        unforced_error_rate=unforced_errors / total_errors if total_errors else 0.0,
        first_inaccuracy_move=first_inaccuracy_move,
    )


def calculate_tactical_metrics(analysis: GameAnalysis, player_color: Color) -> TacticalMetrics:
    opportunities = [t for t in analysis.tactical_opportunities if t.color == player_color]

    created = converted = missed_winning = missed_equalizing = missed_mates = 0
    for opportunity in opportunities:
        if opportunity.type == "found":
            created += 1
            converted += 1
        elif opportunity.tactic == "mate":
            missed_mates += 1
        elif opportunity.evaluation >= WINNING_THRESHOLD:
            missed_winning += 1
        else:
            missed_equalizing += 1

    return TacticalMetrics(
        tactics_created=created,
        tactics_converted=converted,
        missed_winning_tactics=missed_winning,
        missed_equalizing_tactics=missed_equalizing,
        missed_forced_mates=missed_mates,
        total_tactical_opportunities=len(opportunities),
    )


def calculate_stability_metrics(
    player_moves: List[AnalyzedMove],
    player_color: Color,
    result: GameResult,
) -> StabilityMetrics:
    # Once the player has blundered, every later move counts until the end
    post_blunder_blunders = 0
    post_blunder_moves = 0
    in_post_blunder_state = False

    for move in player_moves:
        is_blunder = move.classification == MoveClassification.BLUNDER
        if in_post_blunder_state:
            post_blunder_moves += 1
            if is_blunder:
                post_blunder_blunders += 1
        if is_blunder:
            in_post_blunder_state = True

    was_losing = any(m.evaluation_before <= -WINNING_THRESHOLD for m in player_moves)

    return StabilityMetrics(
        post_blunder_blunder_rate=(
            post_blunder_blunders / post_blunder_moves if post_blunder_moves else 0.0
        ),
        lost_from_winning=int(was_winning(player_moves) and player_lost(result, player_color)),
        defensive_saves=int(was_losing and result == "1/2-1/2"),
    )


def calculate_time_metrics(player_moves: List[AnalyzedMove]) -> TimeManagementMetrics:
    if not player_moves:
        return TimeManagementMetrics()

    times = [m.time_spent for m in player_moves]
    return TimeManagementMetrics(
        average_time_per_move=sum(times) / len(times),
        moves_under_10s=sum(1 for t in times if t < 10),
        moves_under_5s=sum(1 for t in times if t < 5),
        moves_under_2s=sum(1 for t in times if t < 2),
        total_moves=len(times),
    )


def _evaluation_at(player_moves: List[AnalyzedMove], move_number: int) -> Optional[int]:
    for move in player_moves:
        if move.move_number == move_number:
            return move.evaluation_after
    return None


def calculate_game_phase_metrics(
    analysis: GameAnalysis,
    player_moves: List[AnalyzedMove],
) -> GamePhaseMetrics:
    phases = analysis.game_phases
    return GamePhaseMetrics(
        opening_start=phases.opening.start,
        opening_end=phases.opening.end,
        middlegame_start=phases.middlegame.start,
        middlegame_end=phases.middlegame.end,
        endgame_start=phases.endgame.start,
        endgame_end=phases.endgame.end,
        evaluation_at_move_10=_evaluation_at(player_moves, 10),
        evaluation_at_move_15=_evaluation_at(player_moves, 15),
    )


# ============================================
# Composite scores
# ============================================

def calculate_precision_score(precision: PrecisionMetrics) -> float:
    """
    Precision = overall_accuracy * 0.30
              + (100 - blunders * 10) * 0.25
              + (100 - avg_cpl / 2) * 0.20
              + opening_accuracy * 0.10
              + middlegame_accuracy * 0.10
              + endgame_accuracy * 0.05
    """
    blunder_term = 100 - min(100, precision.blunders * 10)
    cpl_term = 100 - min(100, precision.average_cpl / 2)

    score = (
        _clamp(precision.overall_accuracy) * 0.30
        + _clamp(blunder_term) * 0.25
        + _clamp(cpl_term) * 0.20
        + _clamp(precision.opening_accuracy) * 0.10
        + _clamp(precision.middlegame_accuracy) * 0.10
        + _clamp(precision.endgame_accuracy) * 0.05
    )
    return clamp_score(score)


def calculate_tactical_score(tactical: TacticalMetrics) -> float:
    total = tactical.total_tactical_opportunities
    if total == 0:
        return NEUTRAL_SCORE

    found_rate = tactical.tactics_converted / total * 100
    missed_penalty = tactical.missed_forced_mates * 20 + tactical.missed_winning_tactics * 10
    return clamp_score(50 + found_rate - missed_penalty)


def calculate_stability_score(
    stability: StabilityMetrics,
    time_management: TimeManagementMetrics,
) -> float:
    fast_moves_penalty = time_management.moves_under_5s / max(1, time_management.total_moves) * 30
    post_blunder_penalty = stability.post_blunder_blunder_rate * 20
    return clamp_score(80 - fast_moves_penalty - post_blunder_penalty)


def calculate_conversion_score(winning: bool, won: bool) -> float:
    if not winning:
        return NEUTRAL_SCORE
    return 100.0 if won else 20.0


def calculate_preparation_score(
    precision: PrecisionMetrics,
    game_phases: GamePhaseMetrics,
) -> float:
    score = _clamp(precision.opening_accuracy) * 0.6
    if game_phases.evaluation_at_move_10 is not None and game_phases.evaluation_at_move_10 > 0:
        score += 20
    if game_phases.evaluation_at_move_15 is not None and game_phases.evaluation_at_move_15 > 0:
        score += 20
    return clamp_score(score)


def calculate_positional_score(precision: PrecisionMetrics) -> float:
    blunder_penalty = min(50, precision.blunders * 15)
    return clamp_score(precision.overall_accuracy - blunder_penalty)


def calculate_aggression_score() -> float:
    """Needs piece-activity analysis, which does not exist yet."""
    return NEUTRAL_SCORE


def calculate_simplification_score() -> float:
    """Needs piece-trade analysis, which does not exist yet."""
    return NEUTRAL_SCORE


def calculate_training_transfer_score(recent_accuracies: List[float]) -> float:
    """Accuracy trend over a series of games, oldest first.

    Compares the mean of the second half with the first half: -10 points
    maps to 0, +10 to 100. Fewer than five games is neutral.
    """
    if len(recent_accuracies) < 5:
        return NEUTRAL_SCORE

    half = len(recent_accuracies) // 2
    first_half = recent_accuracies[:half]
    second_half = recent_accuracies[half:]
    improvement = sum(second_half) / len(second_half) - sum(first_half) / len(first_half)
    return clamp_score(50 + improvement * 5)


def calculate_composite_scores(
    precision: PrecisionMetrics,
    tactical: TacticalMetrics,
    stability: StabilityMetrics,
    time_management: TimeManagementMetrics,
    game_phases: GamePhaseMetrics,
    winning: bool,
    won: bool,
) -> CompositeScores:
    return CompositeScores(
        precision=calculate_precision_score(precision),
        tactical_danger=calculate_tactical_score(tactical),
        stability=calculate_stability_score(stability, time_management),
        conversion=calculate_conversion_score(winning, won),
        preparation=calculate_preparation_score(precision, game_phases),
        positional=calculate_positional_score(precision),
        aggression=calculate_aggression_score(),
        simplification=calculate_simplification_score(),
        # Needs the player's history, see profile.build_player_profile
        training_transfer=NEUTRAL_SCORE,
    )


def calculate_metrics(
    analysis: GameAnalysis,
    player_color: Color,
    opponent_elo: int,
    result: GameResult,
) -> GameMetrics:
    """Game metrics and composite scores for one analysed game."""
    player_moves = [m for m in analysis.move_analysis if m.color == player_color]

    precision = calculate_precision_metrics(analysis, player_moves)
    tactical = calculate_tactical_metrics(analysis, player_color)
    stability = calculate_stability_metrics(player_moves, player_color, result)
    time_management = calculate_time_metrics(player_moves)
    game_phases = calculate_game_phase_metrics(analysis, player_moves)

    winning = was_winning(player_moves)
    won = player_won(result, player_color)

    return GameMetrics(
        game_id=analysis.game_id,
        timestamp=analysis.analysis_timestamp,
        player_color=player_color,
        opponent_elo=opponent_elo,
        result=result,
        was_winning=winning,
        won=won,
        precision=precision,
        tactical=tactical,
        stability=stability,
        time_management=time_management,
        game_phases=game_phases,
        composite_scores=calculate_composite_scores(
            precision, tactical, stability, time_management, game_phases, winning, won,
        ),
    )
