"""Shared builders and a scripted evaluator for the test suite."""
from typing import Dict, List, Optional, Sequence, Tuple

import chess

from exam_analyzer.analyzer import assemble_analysis
from exam_analyzer.classifier import classify_move
from exam_analyzer.errors import EvaluatorTimeout
from exam_analyzer.models import (
    AlternativeMove, AnalyzedMove, GameAnalysis, GameRecord, RankedMove, RecordedMove,
)
from exam_analyzer.scores import side_of

ITALIAN = ["e2e4", "e7e5", "g1f3", "b8c6", "f1c4", "f8c5"]


class StubEvaluator:
    """Scripted evaluator: rankings looked up by FEN, a default otherwise."""

    def __init__(self, rankings: Optional[Dict[str, List[RankedMove]]] = None, default_score: int = 0):
        self.name = "stub-evaluator"
        self.rankings = rankings or {}
        self.default_score = default_score
        self.fen = chess.STARTING_FEN
        self.calls: List[Tuple[str, Optional[int], int]] = []
        self.closed = False

    async def set_position(self, fen, moves=None):
        board = chess.Board(fen)
        for uci in moves or []:
            board.push_uci(uci)
        self.fen = board.fen()

    async def get_ranked_moves(self, depth=None, time_limit_ms=None, count=1):
        self.calls.append((self.fen, depth, count))
        if self.fen in self.rankings:
            return self.rankings[self.fen][:count]
        board = chess.Board(self.fen)
        legal = [m.uci() for m in board.legal_moves]
        return [RankedMove(move=legal[0] if legal else None, score=self.default_score)]

    async def close(self):
        self.closed = True


class TimeoutEvaluator(StubEvaluator):
    """Times out on every query deeper than `max_depth`."""

    def __init__(self, max_depth: int, **kwargs):
        super().__init__(**kwargs)
        self.max_depth = max_depth

    async def get_ranked_moves(self, depth=None, time_limit_ms=None, count=1):
        if depth is not None and depth > self.max_depth:
            self.calls.append((self.fen, depth, count))
            raise EvaluatorTimeout(f"depth {depth} too slow")
        return await super().get_ranked_moves(depth, time_limit_ms, count)


def scripted_game(
    ucis: Sequence[str],
    player_color: str = "white",
    result: str = "1-0",
    think_times: Optional[Sequence[float]] = None,
    game_id: str = "game-1",
    starting_fen: Optional[str] = None,
) -> Tuple[GameRecord, List[str]]:
    """GameRecord for legal UCI moves, plus the FEN before each move."""
    board = chess.Board(starting_fen or chess.STARTING_FEN)
    positions_before = []
    moves = []
    for index, uci in enumerate(ucis):
        positions_before.append(board.fen())
        move = chess.Move.from_uci(uci)
        number = board.fullmove_number
        color = side_of(board.turn)
        san = board.san(move)
        board.push(move)
        moves.append(RecordedMove(
            move_number=number,
            color=color,
            san=san,
            uci=uci,
            fen=board.fen(),
            timestamp=1_700_000_000_000 + index * 1000,
            time_spent=think_times[index] if think_times else 10.0,
        ))

    record = GameRecord(
        game_id=game_id,
        player_color=player_color,
        opponent="test-bot",
        opponent_elo=1500,
        result=result,
        termination="checkmate",
        moves=moves,
        starting_fen=starting_fen,
    )
    return record, positions_before


def analyzed(
    move_number: int,
    color: str = "white",
    cpl: int = 0,
    before: int = 0,
    after: Optional[int] = None,
    uci: str = "e2e4",
    best: Optional[str] = None,
    alternatives: Optional[List[int]] = None,
    time_spent: float = 10.0,
) -> AnalyzedMove:
    """AnalyzedMove built directly from numbers (player's perspective)."""
    classification, accuracy = classify_move(cpl)
    if after is None:
        after = before - cpl
    if alternatives is None:
        alternatives = [before]
    return AnalyzedMove(
        move_number=move_number,
        color=color,
        move=f"M{move_number}{color[0]}",
        uci=uci,
        evaluation_before=before,
        evaluation_after=after,
        centipawn_loss=cpl,
        classification=classification,
        accuracy=accuracy,
        best_move=best or uci,
        alternative_moves=[AlternativeMove(move=best or uci, evaluation=e) for e in alternatives],
        time_spent=time_spent,
    )


def full_game(
    last_move: int,
    player_color: str = "white",
    **player_kwargs,
) -> List[AnalyzedMove]:
    """Both sides' moves 1..last_move; keyword args apply to player moves."""
    moves = []
    for number in range(1, last_move + 1):
        for color in ("white", "black"):
            if color == player_color:
                moves.append(analyzed(number, color, **player_kwargs))
            else:
                moves.append(analyzed(number, color))
    return moves


def build_analysis(
    moves: List[AnalyzedMove],
    player_color: str = "white",
    game_id: str = "game-1",
) -> GameAnalysis:
    return assemble_analysis(
        game_id, moves, player_color, "stub-evaluator",
        analysis_timestamp="2026-01-01T00:00:00+00:00",
    )
