"""
Centipawn score helpers.

Engines report scores from the point of view of the side to move, so a
score taken after White's move speaks for Black. `RelativeScore` keeps the
side next to the number and `pov()` is the only place the sign is flipped.
"""
from typing import Literal, NamedTuple, Optional

import chess

Side = Literal["white", "black"]

# Mate in n is reported as +/-(MATE_SCORE - n)
MATE_SCORE = 100000
MATE_THRESHOLD = 90000


def side_of(color: chess.Color) -> Side:
    return "white" if color == chess.WHITE else "black"


def opposite(side: Side) -> Side:
    return "black" if side == "white" else "white"


class RelativeScore(NamedTuple):
    """Centipawns as seen by `side`."""
    cp: int
    side: Side

    def pov(self, side: Side) -> int:
        """Score from `side`'s point of view."""
        return self.cp if side == self.side else -self.cp


def is_mate_score(score: int) -> bool:
    return abs(score) >= MATE_THRESHOLD


def mate_in(score: int) -> Optional[int]:
    """Moves to mate encoded in a score (negative when being mated)."""
    if not is_mate_score(score):
        return None
    if score > 0:
        return MATE_SCORE - score
    return -MATE_SCORE - score


def format_score(score: int) -> str:
    """"+1.50", "-0.30", "M3" or "-M2"."""
    moves = mate_in(score)
    if moves is not None:
        return f"M{moves}" if score > 0 else f"-M{abs(moves)}"
    return f"{score / 100.0:+.2f}"
