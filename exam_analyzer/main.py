import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from exam_analyzer.analyzer import analyze_game
from exam_analyzer.config import (
    ANALYSIS_DEPTH, CORS_ORIGINS, DEEP_ANALYSIS_DEPTH, FALLBACK_DEPTH, LOG_LEVEL,
)
from exam_analyzer.errors import EvaluatorTimeout, EvaluatorUnavailable, MalformedGameRecord
from exam_analyzer.evaluator import create_evaluator
from exam_analyzer.metrics import calculate_metrics
from exam_analyzer.models import (
    Color, GameAnalysis, GameMetrics, GameRecord, GameResult, PlayerProfile,
)
from exam_analyzer.pgn_parser import game_record_from_pgn
from exam_analyzer.profile import build_player_profile

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the evaluator once and share it across requests."""
    configure_logging()
    try:
        app.state.evaluator = await create_evaluator()
        logger.info("Evaluator ready: %s", app.state.evaluator.name)
    except EvaluatorUnavailable as e:
        logger.error("Evaluator unavailable, analysis endpoints will fail: %s", e)
        app.state.evaluator = None

    yield

    if app.state.evaluator is not None:
        await app.state.evaluator.close()


app = FastAPI(title="Exam Game Analyzer", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One engine process: analyses run one at a time
analysis_lock = asyncio.Lock()

# Progress by game id
analysis_progress: dict[str, dict] = {}


class AnalyzeRequest(BaseModel):
    game: GameRecord
    depth: Optional[int] = None
    deep_analysis: bool = False


class AnalyzePgnRequest(BaseModel):
    pgn: str
    player_color: Color = "white"
    game_id: Optional[str] = None
    depth: Optional[int] = None
    deep_analysis: bool = False


class MetricsRequest(BaseModel):
    analysis: GameAnalysis
    player_color: Color
    opponent_elo: int = 0
    result: GameResult


class ProfileRequest(BaseModel):
    history: List[GameMetrics]
    total_games: Optional[int] = None


def _track_progress(game_id: str):
    def on_progress(current: int, total: int, label: str) -> None:
        analysis_progress[game_id] = {
            "status": "running",
            "progress": int(current / total * 100) if total else 0,
            "current": current,
            "total": total,
            "message": label,
        }
    return on_progress


async def _run_analysis(record: GameRecord, depth: Optional[int], deep_analysis: bool) -> GameAnalysis:
    evaluator = getattr(app.state, "evaluator", None)
    if evaluator is None:
        raise HTTPException(status_code=503, detail="Evaluator is not available")

    if depth is None:
        depth = DEEP_ANALYSIS_DEPTH if deep_analysis else ANALYSIS_DEPTH
    on_progress = _track_progress(record.game_id)

    try:
        async with analysis_lock:
            try:
                analysis = await analyze_game(record, evaluator, depth=depth, on_progress=on_progress)
            except EvaluatorTimeout as e:
                if depth <= FALLBACK_DEPTH:
                    raise
                logger.warning(
                    "Analysis of %s timed out at depth %d (%s), retrying at depth %d",
                    record.game_id, depth, e, FALLBACK_DEPTH,
                )
                analysis = await analyze_game(
                    record, evaluator, depth=FALLBACK_DEPTH, on_progress=on_progress,
                )
    except MalformedGameRecord as e:
        analysis_progress[record.game_id] = {"status": "failed", "message": str(e)}
        raise HTTPException(status_code=400, detail=str(e))
    except EvaluatorTimeout as e:
        analysis_progress[record.game_id] = {"status": "failed", "message": str(e)}
        raise HTTPException(status_code=504, detail=f"Analysis timed out: {e}")
    except EvaluatorUnavailable as e:
        analysis_progress[record.game_id] = {"status": "failed", "message": str(e)}
        raise HTTPException(status_code=503, detail=f"Analysis failed: {e}")

    analysis_progress[record.game_id] = {
        "status": "completed",
        "progress": 100,
        "current": len(record.moves),
        "total": len(record.moves),
        "message": "Analysis complete",
    }
    return analysis


@app.post("/api/analyze", response_model=GameAnalysis)
async def analyze_game_endpoint(request: AnalyzeRequest):
    """Analyse a finished game record."""
    logger.info("Analysis requested for %s", request.game.game_id)
    return await _run_analysis(request.game, request.depth, request.deep_analysis)


@app.post("/api/analyze/pgn", response_model=GameAnalysis)
async def analyze_pgn_endpoint(request: AnalyzePgnRequest):
    """Analyse a finished game given as PGN."""
    try:
        record = game_record_from_pgn(request.pgn, request.player_color, game_id=request.game_id)
    except MalformedGameRecord as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _run_analysis(record, request.depth, request.deep_analysis)


@app.post("/api/metrics", response_model=GameMetrics)
async def metrics_endpoint(request: MetricsRequest):
    return calculate_metrics(
        request.analysis, request.player_color, request.opponent_elo, request.result,
    )


@app.post("/api/profile", response_model=PlayerProfile)
async def profile_endpoint(request: ProfileRequest):
    return build_player_profile(request.history, total_games=request.total_games)


@app.get("/api/progress/{game_id}")
async def get_progress(game_id: str):
    """Progress of a running or finished analysis.

    A finished (completed or failed) entry is dropped once it has been read.
    """
    if game_id not in analysis_progress:
        return {
            "status": "pending",
            "progress": 0,
            "current": 0,
            "total": 0,
            "message": "Waiting for analysis",
        }
    progress = analysis_progress[game_id]
    if progress["status"] in ("completed", "failed"):
        del analysis_progress[game_id]
    return progress


@app.get("/")
async def root():
    return {"message": "Exam Game Analyzer API", "version": "1.0.0"}
