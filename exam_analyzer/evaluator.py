"""
Position evaluators.

Every evaluator answers the same question: "given this position, what are
the best moves and their scores?" Scores are signed centipawns from the
point of view of the side to move, mate in n encoded as +/-(MATE_SCORE - n).
"""
import asyncio
import logging
from typing import List, Optional, Protocol

import chess
import chess.engine
import httpx

from exam_analyzer.config import (
    ENGINE_HASH_MB, ENGINE_THREADS, ENGINE_TIMEOUT_SECONDS, EVALUATOR,
    LICHESS_API_BASE, LICHESS_API_TOKEN, STOCKFISH_PATH,
)
from exam_analyzer.errors import EvaluatorTimeout, EvaluatorUnavailable, MalformedGameRecord
from exam_analyzer.models import RankedMove
from exam_analyzer.scores import MATE_SCORE, RelativeScore, side_of

logger = logging.getLogger(__name__)


class Evaluator(Protocol):
    name: str

    async def set_position(self, fen: str, moves: Optional[List[str]] = None) -> None:
        ...

    async def get_ranked_moves(
        self,
        depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        count: int = 1,
    ) -> List[RankedMove]:
        ...

    async def close(self) -> None:
        ...


def build_board(fen: str, moves: Optional[List[str]] = None) -> chess.Board:
    """Board for `fen` with the UCI `moves` applied."""
    try:
        board = chess.Board(fen)
        for uci in moves or []:
            board.push_uci(uci)
    except ValueError as e:
        raise MalformedGameRecord(f"Cannot set position {fen!r} + {moves}: {e}") from e
    return board


def terminal_ranking(board: chess.Board) -> Optional[List[RankedMove]]:
    """Ranking for a finished game, or None when there are moves to search."""
    if board.is_checkmate():
        return [RankedMove(move=None, score=-MATE_SCORE)]
    if board.is_game_over(claim_draw=False):
        return [RankedMove(move=None, score=0)]
    return None


class UciEvaluator:
    """Local UCI engine (Stockfish) driven through python-chess."""

    def __init__(
        self,
        path: str = STOCKFISH_PATH,
        threads: int = ENGINE_THREADS,
        hash_mb: int = ENGINE_HASH_MB,
        timeout: float = ENGINE_TIMEOUT_SECONDS,
    ):
        self.path = path
        self.threads = threads
        self.hash_mb = hash_mb
        self.timeout = timeout
        self.name = "UCI engine"
        self.engine: Optional[chess.engine.UciProtocol] = None
        self.board = chess.Board()

    async def start(self) -> None:
        try:
            _, self.engine = await chess.engine.popen_uci(self.path)
            await self.engine.configure({"Threads": self.threads, "Hash": self.hash_mb})
        except (OSError, chess.engine.EngineError) as e:
            raise EvaluatorUnavailable(f"Failed to start engine at {self.path}: {e}") from e

        engine_id = self.engine.id.get("name")
        if engine_id:
            self.name = engine_id
        logger.info("Started %s (%s)", self.name, self.path)

    async def set_position(self, fen: str, moves: Optional[List[str]] = None) -> None:
        self.board = build_board(fen, moves)

    async def get_ranked_moves(
        self,
        depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        count: int = 1,
    ) -> List[RankedMove]:
        if self.engine is None:
            raise EvaluatorUnavailable("Engine not started. Call start() first.")

        finished = terminal_ranking(self.board)
        if finished is not None:
            return finished

        limit = chess.engine.Limit(
            depth=depth,
            time=time_limit_ms / 1000.0 if time_limit_ms else None,
        )
        try:
            infos = await asyncio.wait_for(
                self.engine.analyse(self.board, limit, multipv=count),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EvaluatorTimeout(
                f"No answer within {self.timeout}s for {self.board.fen()}"
            ) from e
        except chess.engine.EngineError as e:
            raise EvaluatorUnavailable(f"Engine failed: {e}") from e

        ranked = []
        for info in infos:
            score = info.get("score")
            pv = info.get("pv") or []
            if score is None or not pv:
                continue
            ranked.append(RankedMove(
                move=pv[0].uci(),
                score=score.relative.score(mate_score=MATE_SCORE),
                pv=[m.uci() for m in pv],
            ))
        return ranked

    async def close(self) -> None:
        if self.engine is not None:
            try:
                await self.engine.quit()
            except chess.engine.EngineTerminatedError:
                logger.warning("Engine already terminated")
            self.engine = None


def get_auth_headers() -> dict:
    """Authorization header when a Lichess token is configured."""
    headers = {}
    if LICHESS_API_TOKEN:
        headers["Authorization"] = f"Bearer {LICHESS_API_TOKEN}"
    return headers


def cloud_score(pv_data: dict) -> Optional[int]:
    """White-relative cloud-eval line to an encoded centipawn score."""
    if pv_data.get("mate") is not None:
        mate = int(pv_data["mate"])
        return MATE_SCORE - mate if mate > 0 else -MATE_SCORE - mate
    if pv_data.get("cp") is not None:
        return int(pv_data["cp"])
    return None


class CloudEvaluator:
    """Lichess cloud evaluation database.

    Only positions already in the cloud database can be answered; any other
    position (a 404) makes the evaluator unavailable for the game. The
    database mostly covers openings and popular lines, so most real games
    fail part way through. Use it for short or well-known games; a local
    UCI engine is the evaluator for everything else.
    """

    def __init__(
        self,
        base_url: str = LICHESS_API_BASE,
        max_retries: int = 2,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        has_token = bool(LICHESS_API_TOKEN)
        self.name = "Lichess cloud eval"
        self.max_retries = max_retries
        self.retry_wait = 0.5 if has_token else 2.0
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=get_auth_headers(),
            timeout=timeout or (15.0 if has_token else 30.0),
            transport=transport,
        )
        self.board = chess.Board()

    async def set_position(self, fen: str, moves: Optional[List[str]] = None) -> None:
        self.board = build_board(fen, moves)

    async def _fetch(self, fen: str, count: int) -> dict:
        params = {"fen": fen, "multiPv": count}
        for attempt in range(self.max_retries):
            try:
                response = await self.client.get("/cloud-eval", params=params)
            except httpx.TimeoutException as e:
                raise EvaluatorTimeout(f"Cloud eval timed out for {fen}") from e
            except httpx.HTTPError as e:
                raise EvaluatorUnavailable(f"Cloud eval request failed: {e}") from e

            if response.status_code == 404:
                raise EvaluatorUnavailable(f"Cloud eval not available for {fen}")
            if response.status_code == 429:
                if attempt < self.max_retries - 1:
                    wait_time = self.retry_wait * (attempt + 1)
                    logger.warning(
                        "Rate limit (429) hit, waiting %.1fs before retry %d/%d",
                        wait_time, attempt + 1, self.max_retries,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise EvaluatorUnavailable(
                    f"Rate limit exceeded (429) after {self.max_retries} attempts"
                )
            if response.status_code != 200:
                raise EvaluatorUnavailable(f"Cloud eval returned HTTP {response.status_code}")
            return response.json()

        raise EvaluatorUnavailable(f"Cloud eval failed after {self.max_retries} attempts")

    async def get_ranked_moves(
        self,
        depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        count: int = 1,
    ) -> List[RankedMove]:
        finished = terminal_ranking(self.board)
        if finished is not None:
            return finished

        # Cloud entries are precomputed, depth and time cannot be requested
        data = await self._fetch(self.board.fen(), count)
        to_move = side_of(self.board.turn)

        ranked = []
        for pv_data in data.get("pvs", [])[:count]:
            score = cloud_score(pv_data)
            moves = pv_data.get("moves") or ""
            pv = moves.split() if isinstance(moves, str) else list(moves)
            if score is None or not pv:
                continue
            ranked.append(RankedMove(
                move=pv[0],
                score=RelativeScore(score, "white").pov(to_move),
                pv=pv,
            ))
        return ranked

    async def close(self) -> None:
        await self.client.aclose()


async def create_evaluator(kind: str = EVALUATOR) -> Evaluator:
    """Build and start the evaluator named in configuration."""
    if kind == "cloud":
        return CloudEvaluator()
    if kind == "uci":
        evaluator = UciEvaluator()
        await evaluator.start()
        return evaluator
    raise ValueError(f"Unknown evaluator: {kind!r} (expected 'uci' or 'cloud')")
