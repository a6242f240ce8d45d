"""Move quality from centipawn loss."""
from typing import Tuple

from exam_analyzer.config import (
    EXCELLENT_MAX_CPL, GOOD_MAX_CPL, INACCURACY_MAX_CPL, MISTAKE_MAX_CPL,
)
from exam_analyzer.models import MoveClassification


CLASSIFICATION_ACCURACY = {
    MoveClassification.EXCELLENT: 100,
    MoveClassification.GOOD: 90,
    MoveClassification.INACCURACY: 70,
    MoveClassification.MISTAKE: 40,
    MoveClassification.BLUNDER: 0,
}


def classify_move(centipawn_loss: float) -> Tuple[MoveClassification, int]:
    """Map a centipawn loss to (classification, accuracy).

    Upper bounds are inclusive: 10 is still excellent, 11 is good.
    """
    if centipawn_loss < 0:
        raise ValueError(f"centipawn loss must be non-negative, got {centipawn_loss}")

    if centipawn_loss <= EXCELLENT_MAX_CPL:
        classification = MoveClassification.EXCELLENT
    elif centipawn_loss <= GOOD_MAX_CPL:
        classification = MoveClassification.GOOD
    elif centipawn_loss <= INACCURACY_MAX_CPL:
        classification = MoveClassification.INACCURACY
    elif centipawn_loss <= MISTAKE_MAX_CPL:
        classification = MoveClassification.MISTAKE
    else:
        classification = MoveClassification.BLUNDER

    return classification, CLASSIFICATION_ACCURACY[classification]


def is_error(classification: MoveClassification) -> bool:
    """Inaccuracy or worse."""
    return classification in (
        MoveClassification.INACCURACY,
        MoveClassification.MISTAKE,
        MoveClassification.BLUNDER,
    )
