"""
Runtime configuration - values come from the environment (or a .env file
at the project root) and fall back to the defaults below.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root
package_dir = Path(__file__).parent
env_file = package_dir.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)


# Evaluator selection: "uci" (local Stockfish) or "cloud" (Lichess cloud eval)
EVALUATOR = os.getenv("EVALUATOR", "uci")
STOCKFISH_PATH = os.getenv("STOCKFISH_PATH", "stockfish")
ENGINE_THREADS = int(os.getenv("ENGINE_THREADS", "1"))
ENGINE_HASH_MB = int(os.getenv("ENGINE_HASH_MB", "64"))
ENGINE_TIMEOUT_SECONDS = float(os.getenv("ENGINE_TIMEOUT_SECONDS", "30"))

LICHESS_API_BASE = os.getenv("LICHESS_API_BASE", "https://lichess.org/api")
LICHESS_API_TOKEN = os.getenv("LICHESS_API_TOKEN", "")

# Search depth in plies
QUICK_ANALYSIS_DEPTH = 15
DEEP_ANALYSIS_DEPTH = 20
ANALYSIS_DEPTH = int(os.getenv("ANALYSIS_DEPTH", str(QUICK_ANALYSIS_DEPTH)))
FALLBACK_DEPTH = int(os.getenv("FALLBACK_DEPTH", "10"))
MULTI_PV = int(os.getenv("MULTI_PV", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Comma-separated origins allowed to call the API
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
ANALYSIS_VERSION = "1.0"

# Classification upper bounds (centipawn loss, inclusive)
EXCELLENT_MAX_CPL = 10
GOOD_MAX_CPL = 25
INACCURACY_MAX_CPL = 75
MISTAKE_MAX_CPL = 200

# Phase cutoffs (full-move numbers)
OPENING_END_MOVE = 12
MIDDLEGAME_END_MOVE = 35

CRITICAL_MOMENT_THRESHOLD = 100  # 1 pawn swing
WINNING_THRESHOLD = 200  # +2.0 pawns
AHEAD_THRESHOLD = 50
BEHIND_THRESHOLD = -50
TACTIC_GAIN_THRESHOLD = 100
TACTIC_MAX_CPL = 25
MISSED_TACTIC_MIN_CPL = 100
