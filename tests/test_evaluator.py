"""
Tests for the evaluators.

The cloud evaluator runs against httpx.MockTransport; the UCI evaluator
against a fake engine object, since no engine binary is assumed.
"""
import asyncio

import chess
import chess.engine
import httpx
import pytest

from exam_analyzer.errors import EvaluatorTimeout, EvaluatorUnavailable, MalformedGameRecord
from exam_analyzer.evaluator import (
    CloudEvaluator, UciEvaluator, cloud_score, create_evaluator, terminal_ranking,
)
from exam_analyzer.scores import MATE_SCORE

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
FOOLS_MATE = ["f2f3", "e7e5", "g2g4", "d8h4"]
STALEMATE = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"


def cloud(handler):
    evaluator = CloudEvaluator(
        base_url="https://lichess.test/api",
        transport=httpx.MockTransport(handler),
    )
    evaluator.retry_wait = 0
    return evaluator


def run_cloud(handler, fen, moves=None, count=1):
    """Query a fresh cloud evaluator once; returns (ranking, evaluator)."""
    evaluator = cloud(handler)

    async def query():
        try:
            await evaluator.set_position(fen, moves)
            return await evaluator.get_ranked_moves(depth=15, count=count)
        finally:
            await evaluator.close()

    return asyncio.run(query()), evaluator


class TestCloudScore:
    def test_centipawns(self):
        assert cloud_score({"cp": -35}) == -35

    def test_mate(self):
        assert cloud_score({"mate": 2}) == MATE_SCORE - 2
        assert cloud_score({"mate": -3}) == -MATE_SCORE + 3

    def test_missing(self):
        assert cloud_score({}) is None


class TestCloudEvaluator:
    def test_scores_converted_to_side_to_move(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"pvs": [
                {"moves": "c7c5 g1f3", "cp": 30},
                {"moves": "e7e5 g1f3", "cp": 20},
            ]})

        ranked, _ = run_cloud(handler, AFTER_E4, count=2)

        assert [r.move for r in ranked] == ["c7c5", "e7e5"]
        assert [r.score for r in ranked] == [-30, -20]
        assert ranked[0].pv == ["c7c5", "g1f3"]
        assert requests[0].url.path == "/api/cloud-eval"
        assert requests[0].url.params["fen"] == AFTER_E4
        assert requests[0].url.params["multiPv"] == "2"

    def test_mate_scores(self):
        def handler(request):
            return httpx.Response(200, json={"pvs": [{"moves": "d8h4", "mate": -1}]})

        ranked, _ = run_cloud(handler, chess.STARTING_FEN, ["f2f3", "e7e5", "g2g4"])

        # Black to move and mating: White-relative -1 is +M1 for Black
        assert ranked[0].score == MATE_SCORE - 1

    def test_missing_position_is_unavailable(self):
        def handler(request):
            return httpx.Response(404, json={"error": "Not found"})

        with pytest.raises(EvaluatorUnavailable):
            run_cloud(handler, AFTER_E4)

    def test_rate_limit_retries_then_gives_up(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        with pytest.raises(EvaluatorUnavailable, match="429"):
            run_cloud(handler, AFTER_E4)
        assert len(calls) == 2

    def test_rate_limit_recovers(self):
        responses = [
            httpx.Response(429),
            httpx.Response(200, json={"pvs": [{"moves": "e7e5", "cp": 15}]}),
        ]

        def handler(request):
            return responses.pop(0)

        ranked, _ = run_cloud(handler, AFTER_E4)

        assert ranked[0].score == -15

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(EvaluatorTimeout):
            run_cloud(handler, AFTER_E4)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EvaluatorUnavailable):
            run_cloud(handler, AFTER_E4)

    def test_server_error(self):
        def handler(request):
            return httpx.Response(500)

        with pytest.raises(EvaluatorUnavailable, match="500"):
            run_cloud(handler, AFTER_E4)

    def test_checkmate_answered_without_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        ranked, _ = run_cloud(handler, chess.STARTING_FEN, FOOLS_MATE)

        assert calls == []
        assert ranked[0].move is None
        assert ranked[0].score == -MATE_SCORE

    def test_illegal_moves_rejected(self):
        with pytest.raises(MalformedGameRecord):
            run_cloud(lambda request: httpx.Response(500), chess.STARTING_FEN, ["e2e5"])


class TestTerminalRanking:
    def test_stalemate_is_a_draw(self):
        ranking = terminal_ranking(chess.Board(STALEMATE))
        assert ranking[0].score == 0

    def test_ongoing_game(self):
        assert terminal_ranking(chess.Board()) is None


class TestUciEvaluator:
    def test_not_started(self):
        evaluator = UciEvaluator(path="/nonexistent/stockfish")
        with pytest.raises(EvaluatorUnavailable, match="not started"):
            asyncio.run(evaluator.get_ranked_moves(depth=5))

    def test_missing_binary(self):
        evaluator = UciEvaluator(path="/nonexistent/stockfish")
        with pytest.raises(EvaluatorUnavailable):
            asyncio.run(evaluator.start())


class FakeEngine:
    """Answers `analyse` with prepared lines built for the queried board."""

    def __init__(self, lines=None, delay=0.0, error=None):
        self.lines = lines or (lambda board: [])
        self.delay = delay
        self.error = error
        self.requests = []
        self.quit_called = False

    async def analyse(self, board, limit, multipv=None):
        self.requests.append((board.fen(), limit, multipv))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.lines(board)

    async def quit(self):
        self.quit_called = True


def mate_and_centipawn_lines(board):
    pov = board.turn
    return [
        {"score": chess.engine.PovScore(chess.engine.Mate(2), pov),
         "pv": [chess.Move.from_uci("d8h4"), chess.Move.from_uci("a2a3")]},
        {"score": chess.engine.PovScore(chess.engine.Cp(-40), pov),
         "pv": [chess.Move.from_uci("b8c6")]},
        {"score": chess.engine.PovScore(chess.engine.Cp(10), pov)},
        {"pv": [chess.Move.from_uci("g8f6")]},
    ]


def run_uci(engine, fen=AFTER_E4, moves=None, timeout=30.0, **query):
    evaluator = UciEvaluator(path="/unused/stockfish", timeout=timeout)
    evaluator.engine = engine

    async def query_once():
        await evaluator.set_position(fen, moves)
        return await evaluator.get_ranked_moves(**query)

    return asyncio.run(query_once())


class TestUciEvaluatorRanking:
    def test_mate_and_centipawn_scores(self):
        ranked = run_uci(FakeEngine(mate_and_centipawn_lines), depth=12, count=4)

        assert [r.score for r in ranked] == [MATE_SCORE - 2, -40]
        assert [r.move for r in ranked] == ["d8h4", "b8c6"]
        assert ranked[0].pv == ["d8h4", "a2a3"]

    def test_lines_without_score_or_pv_dropped(self):
        ranked = run_uci(FakeEngine(mate_and_centipawn_lines), depth=12, count=4)
        assert all(r.move not in ("g8f6", None) for r in ranked)
        assert len(ranked) == 2

    def test_search_limits(self):
        engine = FakeEngine(mate_and_centipawn_lines)

        run_uci(engine, depth=12, time_limit_ms=500, count=3)

        fen, limit, multipv = engine.requests[0]
        assert fen == AFTER_E4
        assert limit.depth == 12
        assert limit.time == 0.5
        assert multipv == 3

    def test_slow_engine_times_out(self):
        engine = FakeEngine(mate_and_centipawn_lines, delay=1.0)

        with pytest.raises(EvaluatorTimeout, match="0.05s"):
            run_uci(engine, timeout=0.05, depth=12)

    def test_engine_error_is_unavailable(self):
        engine = FakeEngine(error=chess.engine.EngineError("crashed"))

        with pytest.raises(EvaluatorUnavailable, match="crashed"):
            run_uci(engine, depth=12)

    def test_terminal_position_skips_engine(self):
        engine = FakeEngine(mate_and_centipawn_lines)

        ranked = run_uci(engine, fen=chess.STARTING_FEN, moves=FOOLS_MATE, depth=12)

        assert engine.requests == []
        assert ranked[0].score == -MATE_SCORE

    def test_close_quits_engine(self):
        engine = FakeEngine()
        evaluator = UciEvaluator(path="/unused/stockfish")
        evaluator.engine = engine

        asyncio.run(evaluator.close())

        assert engine.quit_called
        assert evaluator.engine is None


class TestCreateEvaluator:
    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            asyncio.run(create_evaluator("oracle"))

    def test_cloud(self):
        async def create_and_close():
            evaluator = await create_evaluator("cloud")
            await evaluator.close()
            return evaluator

        assert isinstance(asyncio.run(create_and_close()), CloudEvaluator)
