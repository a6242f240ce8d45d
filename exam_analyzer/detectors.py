"""Critical moments and tactical opportunities in the player's moves."""
from typing import List

from exam_analyzer.config import (
    CRITICAL_MOMENT_THRESHOLD, MISSED_TACTIC_MIN_CPL, TACTIC_GAIN_THRESHOLD,
    TACTIC_MAX_CPL, WINNING_THRESHOLD,
)
from exam_analyzer.models import (
    AnalyzedMove, Color, CriticalMoment, MoveClassification, TacticalOpportunity,
)
from exam_analyzer.scores import MATE_THRESHOLD, format_score


def identify_critical_moments(
    moves: List[AnalyzedMove],
    player_color: Color,
) -> List[CriticalMoment]:
    """Player moves with a swing over one pawn, and every blunder."""
    critical_moments = []

    for move in moves:
        if move.color != player_color:
            continue

        swing = abs(move.evaluation_after - move.evaluation_before)
        is_blunder = move.classification == MoveClassification.BLUNDER
        if swing <= CRITICAL_MOMENT_THRESHOLD and not is_blunder:
            continue

        pawns = f"{swing / 100:.1f}"
        if is_blunder:
            moment_type = "blunder"
            description = f"Blunder with {move.move}, lost {pawns} pawns"
        elif move.classification == MoveClassification.MISTAKE:
            moment_type = "mistake"
            description = f"Mistake with {move.move}, lost {pawns} pawns"
        elif (
            move.evaluation_before >= WINNING_THRESHOLD
            and move.evaluation_after < WINNING_THRESHOLD
        ):
            moment_type = "missed_win"
            description = f"Lost winning advantage with {move.move} ({pawns} pawn swing)"
        else:
            moment_type = "turning_point"
            description = f"Turning point: evaluation swing of {pawns} pawns after {move.move}"

        critical_moments.append(CriticalMoment(
            move_number=move.move_number,
            color=move.color,
            type=moment_type,
            evaluation_swing=swing,
            evaluation_before=move.evaluation_before,
            evaluation_after=move.evaluation_after,
            description=description,
            best_move=move.best_move_san or move.best_move,
        ))

    return critical_moments


def detect_tactic_type(move: AnalyzedMove) -> str:
    """Tactic category for an opportunity.

    Not implemented: there is no pattern recognition (fork, pin, skewer, ...)
    and every opportunity is tagged "other". Replace this function to add it.
    """
    return "other"


def detect_tactical_opportunities(
    moves: List[AnalyzedMove],
    player_color: Color,
) -> List[TacticalOpportunity]:
    """Tactics the player found or missed, judged from evaluation jumps."""
    opportunities = []

    for move in moves:
        if move.color != player_color:
            continue

        best_display = move.best_move_san or move.best_move
        top_alternative = move.alternative_moves[0] if move.alternative_moves else None

        # Sharp gain while playing (close to) the best move
        gain = move.evaluation_after - move.evaluation_before
        if gain >= TACTIC_GAIN_THRESHOLD and move.centipawn_loss < TACTIC_MAX_CPL:
            opportunities.append(TacticalOpportunity(
                move_number=move.move_number,
                color=move.color,
                type="found",
                tactic=detect_tactic_type(move),
                best_move=move.move,
                evaluation=move.evaluation_after,
                description=f"Found tactical opportunity: {move.move}",
            ))

        if (
            move.centipawn_loss >= MISSED_TACTIC_MIN_CPL
            and move.best_move != move.uci
            and top_alternative is not None
            and top_alternative.evaluation >= move.evaluation_before + TACTIC_GAIN_THRESHOLD
        ):
            opportunities.append(TacticalOpportunity(
                move_number=move.move_number,
                color=move.color,
                type="missed",
                tactic=detect_tactic_type(move),
                best_move=best_display,
                evaluation=top_alternative.evaluation,
                description=(
                    f"Missed tactical opportunity: {best_display} instead of {move.move}"
                    f" ({format_score(top_alternative.evaluation)})"
                ),
            ))

        # Either sign: a slower loss against a forced mate also counts
        if (
            top_alternative is not None
            and abs(top_alternative.evaluation) >= MATE_THRESHOLD
            and move.centipawn_loss > 0
        ):
            opportunities.append(TacticalOpportunity(
                move_number=move.move_number,
                color=move.color,
                type="missed",
                tactic="mate",
                best_move=best_display,
                evaluation=top_alternative.evaluation,
                description=(
                    f"Missed forced mate with {best_display}"
                    f" ({format_score(top_alternative.evaluation)})"
                ),
            ))

    return opportunities
