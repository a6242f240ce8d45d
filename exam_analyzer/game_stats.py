"""
Game statistics - phase bands and per-game summary for the analysed player.
"""
from typing import List

from exam_analyzer.config import MIDDLEGAME_END_MOVE, OPENING_END_MOVE
from exam_analyzer.models import (
    AnalysisSummary, AnalyzedMove, Color, GamePhase, GamePhases, MoveClassification,
)


def average_accuracy(moves: List[AnalyzedMove]) -> float:
    """Mean accuracy, 0 for no moves."""
    if not moves:
        return 0.0
    return sum(m.accuracy for m in moves) / len(moves)


def _phase(start: int, end: int, last_move: int, moves: List[AnalyzedMove]) -> GamePhase:
    if start > end:
        # Game ended before this band began
        return GamePhase(start=last_move, end=last_move, accuracy=0.0, move_count=0)
    return GamePhase(
        start=start,
        end=end,
        accuracy=average_accuracy(moves),
        move_count=len(moves),
    )


def determine_game_phases(moves: List[AnalyzedMove], player_color: Color) -> GamePhases:
    """Split the game by move number.

    Opening: 1-12, middlegame: 13-35, endgame: the rest, each clamped to
    the game's last move.
    """
    player_moves = [m for m in moves if m.color == player_color]
    last_move = moves[-1].move_number if moves else 0

    opening_end = min(OPENING_END_MOVE, last_move)
    middlegame_end = min(MIDDLEGAME_END_MOVE, last_move)

    opening_moves = [m for m in player_moves if m.move_number <= opening_end]
    middlegame_moves = [
        m for m in player_moves if opening_end < m.move_number <= middlegame_end
    ]
    endgame_moves = [m for m in player_moves if m.move_number > middlegame_end]

    return GamePhases(
        opening=_phase(1, opening_end, last_move, opening_moves),
        middlegame=_phase(opening_end + 1, middlegame_end, last_move, middlegame_moves),
        endgame=_phase(middlegame_end + 1, last_move, last_move, endgame_moves),
    )


def calculate_summary(
    moves: List[AnalyzedMove],
    game_phases: GamePhases,
    player_color: Color,
) -> AnalysisSummary:
    """Accuracy, centipawn loss and classification counts for the player."""
    player_moves = [m for m in moves if m.color == player_color]

    counts = {classification: 0 for classification in MoveClassification}
    for move in player_moves:
        counts[move.classification] += 1

    total_moves = len(player_moves)
    average_cpl = (
        sum(m.centipawn_loss for m in player_moves) / total_moves if total_moves else 0
    )

    return AnalysisSummary(
        overall_accuracy=round(average_accuracy(player_moves), 1),
        opening_accuracy=round(game_phases.opening.accuracy, 1),
        middlegame_accuracy=round(game_phases.middlegame.accuracy, 1),
        endgame_accuracy=round(game_phases.endgame.accuracy, 1),
        average_centipawn_loss=round(average_cpl),
        blunders=counts[MoveClassification.BLUNDER],
        mistakes=counts[MoveClassification.MISTAKE],
        inaccuracies=counts[MoveClassification.INACCURACY],
        good_moves=counts[MoveClassification.GOOD],
        excellent_moves=counts[MoveClassification.EXCELLENT],
        total_moves=total_moves,
    )
