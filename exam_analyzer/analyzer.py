"""
Post-game analysis pipeline.

The game is folded move by move: each step asks the evaluator for the best
moves in the position before the move, measures how much the played move
gives away, and hands its evaluation on as the next move's starting point.
All evaluations stored on the result are from the analysed player's side.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

import chess

from exam_analyzer.classifier import classify_move
from exam_analyzer.config import (
    ANALYSIS_DEPTH, ANALYSIS_VERSION, DEEP_ANALYSIS_DEPTH, MULTI_PV, STARTING_FEN,
)
from exam_analyzer.detectors import detect_tactical_opportunities, identify_critical_moments
from exam_analyzer.errors import EvaluatorUnavailable, MalformedGameRecord
from exam_analyzer.evaluator import Evaluator
from exam_analyzer.game_stats import calculate_summary, determine_game_phases
from exam_analyzer.models import (
    AlternativeMove, AnalyzedMove, Color, GameAnalysis, GameRecord, RecordedMove,
)
from exam_analyzer.scores import RelativeScore, opposite, side_of

logger = logging.getLogger(__name__)

# (current, total, label)
ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True)
class AnalysisFold:
    """Accumulator threaded through the move list."""
    previous_evaluation: int  # player's perspective
    moves: Tuple[AnalyzedMove, ...] = ()


def validate_game_record(record: GameRecord) -> chess.Board:
    """Check the record's shape and return the starting board.

    Move numbers are full-move numbers: White and Black share one, and it
    goes up after every Black move.
    """
    if not record.moves:
        raise MalformedGameRecord(f"Game {record.game_id} has no moves")

    try:
        board = chess.Board(record.starting_fen or STARTING_FEN)
    except ValueError as e:
        raise MalformedGameRecord(f"Invalid starting position: {e}") from e

    expected_color = side_of(board.turn)
    expected_number = board.fullmove_number

    for index, move in enumerate(record.moves, start=1):
        if not move.fen or not move.fen.strip():
            raise MalformedGameRecord(
                f"Move {move.move_number} ({move.san}) has no resulting position"
            )
        if move.color != expected_color:
            raise MalformedGameRecord(
                f"Move #{index} ({move.san}) is played by {move.color}, expected {expected_color}"
            )
        if move.move_number != expected_number:
            raise MalformedGameRecord(
                f"Move #{index} ({move.san}) is numbered {move.move_number}, expected {expected_number}"
            )
        if expected_color == "black":
            expected_number += 1
        expected_color = opposite(expected_color)

    return board


def best_move_san(position: str, uci: Optional[str]) -> Optional[str]:
    """SAN for an engine move, None if it is not legal in `position`."""
    if not uci:
        return None
    try:
        board = chess.Board(position)
        return board.san(board.parse_uci(uci))
    except ValueError:
        logger.debug("Best move %s is not legal in %s", uci, position)
        return None


async def evaluate_start(
    evaluator: Evaluator,
    fen: str,
    player_color: Color,
    depth: int,
) -> int:
    """Starting position's score from the player's side."""
    await evaluator.set_position(fen)
    ranked = await evaluator.get_ranked_moves(depth=depth, count=1)
    if not ranked:
        raise EvaluatorUnavailable("No analysis available for the starting position")
    to_move = side_of(chess.Board(fen).turn)
    return RelativeScore(ranked[0].score, to_move).pov(player_color)


async def analyze_move(
    evaluator: Evaluator,
    fold: AnalysisFold,
    move: RecordedMove,
    position_before: str,
    player_color: Color,
    depth: int,
    multi_pv: int = MULTI_PV,
) -> AnalysisFold:
    """One fold step: analyse `move` and return the next accumulator."""
    mover = move.color

    await evaluator.set_position(position_before)
    ranked = await evaluator.get_ranked_moves(depth=depth, count=multi_pv)
    if not ranked:
        raise EvaluatorUnavailable(
            f"No analysis available for move {move.move_number}. {move.san}"
        )

    best = ranked[0]
    played = next((r for r in ranked if r.move == move.uci), None)

    if move.uci == best.move:
        centipawn_loss = 0
        played_score = best.score
    elif played is not None:
        centipawn_loss = abs(best.score - played.score)
        played_score = played.score
    else:
        # Outside the requested lines: search the resulting position instead.
        # That score belongs to the opponent, who is now to move.
        await evaluator.set_position(position_before, [move.uci])
        reply = await evaluator.get_ranked_moves(depth=depth, count=1)
        if not reply:
            raise EvaluatorUnavailable(
                f"No analysis available after move {move.move_number}. {move.san}"
            )
        played_score = RelativeScore(reply[0].score, opposite(mover)).pov(mover)
        centipawn_loss = max(0, best.score - played_score)

    classification, accuracy = classify_move(centipawn_loss)
    evaluation_after = RelativeScore(played_score, mover).pov(player_color)

    analyzed = AnalyzedMove(
        move_number=move.move_number,
        color=mover,
        move=move.san,
        uci=move.uci,
        evaluation_before=fold.previous_evaluation,
        evaluation_after=evaluation_after,
        centipawn_loss=centipawn_loss,
        classification=classification,
        accuracy=accuracy,
        best_move=best.move,
        best_move_san=best_move_san(position_before, best.move),
        alternative_moves=[
            AlternativeMove(
                move=alt.move,
                evaluation=RelativeScore(alt.score, mover).pov(player_color),
            )
            for alt in ranked[:3]
        ],
        time_spent=move.time_spent,
        timestamp=move.timestamp,
    )
    logger.debug(
        "%d. %s (%s): cpl=%d %s",
        move.move_number, move.san, mover, centipawn_loss, classification.value,
    )

    return AnalysisFold(
        previous_evaluation=evaluation_after,
        moves=fold.moves + (analyzed,),
    )


def assemble_analysis(
    game_id: str,
    moves: List[AnalyzedMove],
    player_color: Color,
    engine_version: str,
    analysis_timestamp: Optional[str] = None,
) -> GameAnalysis:
    """Derive detectors, phases and summary from an analysed move list."""
    tactical_opportunities = detect_tactical_opportunities(moves, player_color)
    critical_moments = identify_critical_moments(moves, player_color)
    game_phases = determine_game_phases(moves, player_color)
    summary = calculate_summary(moves, game_phases, player_color)

    return GameAnalysis(
        game_id=game_id,
        analysis_version=ANALYSIS_VERSION,
        analysis_timestamp=analysis_timestamp or datetime.now(timezone.utc).isoformat(),
        engine_version=engine_version,
        player_color=player_color,
        summary=summary,
        move_analysis=moves,
        critical_moments=critical_moments,
        tactical_opportunities=tactical_opportunities,
        game_phases=game_phases,
    )


async def analyze_game(
    record: GameRecord,
    evaluator: Evaluator,
    depth: Optional[int] = None,
    deep_analysis: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> GameAnalysis:
    """Analyse a finished game.

    Evaluator errors propagate unchanged; there is no partial result.
    """
    if depth is None:
        depth = DEEP_ANALYSIS_DEPTH if deep_analysis else ANALYSIS_DEPTH

    def report(current: int, total: int, label: str) -> None:
        if on_progress:
            on_progress(current, total, label)

    board = validate_game_record(record)
    starting_fen = board.fen()
    total_moves = len(record.moves)
    started = time.perf_counter()
    logger.info("Analyzing game %s (%d moves, depth %d)", record.game_id, total_moves, depth)

    report(0, total_moves, "Extracting positions")
    fold = AnalysisFold(
        previous_evaluation=await evaluate_start(evaluator, starting_fen, record.player_color, depth)
    )

    position_before = starting_fen
    for index, move in enumerate(record.moves, start=1):
        report(index, total_moves, f"Analyzing move {move.move_number}. {move.san}")
        fold = await analyze_move(
            evaluator, fold, move, position_before, record.player_color, depth,
        )
        position_before = move.fen

    report(total_moves, total_moves, "Calculating metrics")
    analysis = assemble_analysis(
        record.game_id, list(fold.moves), record.player_color, evaluator.name,
    )

    elapsed = time.perf_counter() - started
    logger.info("Analysis of %s completed in %.1fs", record.game_id, elapsed)
    return analysis


class AnalysisPipeline:
    """Evaluator plus analysis settings, reused across games."""

    def __init__(
        self,
        evaluator: Evaluator,
        depth: int = ANALYSIS_DEPTH,
        deep_analysis: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.evaluator = evaluator
        self.depth = DEEP_ANALYSIS_DEPTH if deep_analysis else depth
        self.deep_analysis = deep_analysis
        self.on_progress = on_progress

    def set_depth(self, depth: int) -> None:
        self.depth = depth

    def set_deep_analysis(self, enabled: bool) -> None:
        self.deep_analysis = enabled
        if enabled:
            self.depth = DEEP_ANALYSIS_DEPTH

    async def analyze_game(self, record: GameRecord) -> GameAnalysis:
        return await analyze_game(
            record,
            self.evaluator,
            depth=self.depth,
            on_progress=self.on_progress,
        )
