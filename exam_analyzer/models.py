from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional, Literal


Color = Literal["white", "black"]
GameResult = Literal["1-0", "0-1", "1/2-1/2"]


class MoveClassification(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    INACCURACY = "inaccuracy"
    MISTAKE = "mistake"
    BLUNDER = "blunder"


class RecordedMove(BaseModel):
    move_number: int  # full-move number, shared by White's and Black's move
    color: Color
    san: str
    uci: str
    fen: str  # position after the move
    timestamp: int = 0  # ms since epoch
    time_spent: float = 0.0  # seconds


class GameRecord(BaseModel):
    game_id: str
    timestamp: int = 0
    player_color: Color
    opponent: str = ""
    opponent_elo: int = 0
    result: GameResult
    termination: str = ""
    duration: float = 0.0
    moves: List[RecordedMove]
    pgn: str = ""
    starting_fen: Optional[str] = None


class RankedMove(BaseModel):
    move: Optional[str] = None  # UCI, None on a finished position
    score: int  # centipawns, side to move
    pv: List[str] = []


class AlternativeMove(BaseModel):
    move: Optional[str] = None
    evaluation: int  # player's perspective


class AnalyzedMove(BaseModel):
    move_number: int
    color: Color
    move: str  # SAN
    uci: str
    # evaluations are always from the analysed player's perspective
    evaluation_before: int
    evaluation_after: int
    centipawn_loss: int = Field(ge=0)
    classification: MoveClassification
    accuracy: int
    best_move: Optional[str] = None  # UCI
    best_move_san: Optional[str] = None
    alternative_moves: List[AlternativeMove] = []
    time_spent: float = 0.0
    timestamp: int = 0


class CriticalMoment(BaseModel):
    move_number: int
    color: Color
    type: Literal["blunder", "mistake", "missed_win", "turning_point"]
    evaluation_swing: int
    evaluation_before: int
    evaluation_after: int
    description: str
    best_move: Optional[str] = None


class TacticalOpportunity(BaseModel):
    move_number: int
    color: Color
    type: Literal["found", "missed"]
    tactic: Literal[
        "fork", "pin", "skewer", "discovered_attack",
        "back_rank", "mate", "sacrifice", "other",
    ]
    best_move: Optional[str] = None
    evaluation: int
    description: str


class GamePhase(BaseModel):
    start: int
    end: int
    accuracy: float
    move_count: int = 0  # player moves inside the band


class GamePhases(BaseModel):
    opening: GamePhase
    middlegame: GamePhase
    endgame: GamePhase


class AnalysisSummary(BaseModel):
    overall_accuracy: float
    opening_accuracy: float
    middlegame_accuracy: float
    endgame_accuracy: float
    average_centipawn_loss: int
    blunders: int
    mistakes: int
    inaccuracies: int
    good_moves: int
    excellent_moves: int
    total_moves: int


class GameAnalysis(BaseModel):
    game_id: str
    analysis_version: str
    analysis_timestamp: str
    engine_version: str
    player_color: Color
    summary: AnalysisSummary
    move_analysis: List[AnalyzedMove]
    critical_moments: List[CriticalMoment]
    tactical_opportunities: List[TacticalOpportunity]
    game_phases: GamePhases


class PrecisionMetrics(BaseModel):
    overall_accuracy: float = 0
    opening_accuracy: float = 0
    middlegame_accuracy: float = 0
    endgame_accuracy: float = 0
    average_cpl: float = 0
    blunders: int = 0
    mistakes: int = 0
    inaccuracies: int = 0
    good_moves: int = 0
    excellent_moves: int = 0
    blunders_while_ahead: int = 0
    blunders_in_equal: int = 0
    blunders_while_behind: int = 0
    forced_error_rate: float = 0
    unforced_error_rate: float = 0
    first_inaccuracy_move: Optional[int] = None


class TacticalMetrics(BaseModel):
    tactics_created: int = 0
    tactics_converted: int = 0
    missed_winning_tactics: int = 0
    missed_equalizing_tactics: int = 0
    missed_forced_mates: int = 0
    total_tactical_opportunities: int = 0


class StabilityMetrics(BaseModel):
    post_blunder_blunder_rate: float = 0
    lost_from_winning: int = 0
    defensive_saves: int = 0


class TimeManagementMetrics(BaseModel):
    average_time_per_move: float = 0
    moves_under_10s: int = 0
    moves_under_5s: int = 0
    moves_under_2s: int = 0
    total_moves: int = 0


class GamePhaseMetrics(BaseModel):
    opening_start: int
    opening_end: int
    middlegame_start: int
    middlegame_end: int
    endgame_start: int
    endgame_end: int
    evaluation_at_move_10: Optional[int] = None
    evaluation_at_move_15: Optional[int] = None


class CompositeScores(BaseModel):
    precision: float = 50
    tactical_danger: float = 50
    stability: float = 50
    conversion: float = 50
    preparation: float = 50
    positional: float = 50
    aggression: float = 50
    simplification: float = 50
    training_transfer: float = 50


class GameMetrics(BaseModel):
    game_id: str
    timestamp: str
    player_color: Color
    opponent_elo: int
    result: GameResult
    was_winning: bool
    won: bool
    precision: PrecisionMetrics
    tactical: TacticalMetrics
    stability: StabilityMetrics
    time_management: TimeManagementMetrics
    game_phases: GamePhaseMetrics
    composite_scores: CompositeScores


class OverallStats(BaseModel):
    average_accuracy: float = 0
    average_centipawn_loss: float = 0
    blunders_per_game: float = 0
    mistakes_per_game: float = 0
    inaccuracies_per_game: float = 0


class PlayerRecords(BaseModel):
    win_rate: float = 0
    draw_rate: float = 0
    loss_rate: float = 0
    longest_win_streak: int = 0
    longest_lose_streak: int = 0
    current_streak: int = 0
    current_streak_type: Optional[Literal["win", "draw", "loss"]] = None


class PlayerTrends(BaseModel):
    last_10_games_accuracy: float = 0
    last_30_games_accuracy: float = 0
    accuracy_trend: Literal["improving", "stable", "declining"] = "stable"
    blunder_trend: Literal["decreasing", "stable", "increasing"] = "stable"


class PlayerProfile(BaseModel):
    profile_version: str = "1.0"
    last_updated: str
    total_games: int = 0
    games_analyzed: int = 0
    composite_scores: CompositeScores = Field(default_factory=CompositeScores)
    overall_stats: OverallStats = Field(default_factory=OverallStats)
    records: PlayerRecords = Field(default_factory=PlayerRecords)
    trends: PlayerTrends = Field(default_factory=PlayerTrends)
