import pytest

from exam_analyzer.classifier import CLASSIFICATION_ACCURACY, classify_move, is_error
from exam_analyzer.models import MoveClassification


class TestClassifyMove:
    @pytest.mark.parametrize("cpl, expected", [
        (0, MoveClassification.EXCELLENT),
        (10, MoveClassification.EXCELLENT),
        (11, MoveClassification.GOOD),
        (25, MoveClassification.GOOD),
        (26, MoveClassification.INACCURACY),
        (75, MoveClassification.INACCURACY),
        (76, MoveClassification.MISTAKE),
        (200, MoveClassification.MISTAKE),
        (201, MoveClassification.BLUNDER),
        (199998, MoveClassification.BLUNDER),
    ])
    def test_boundaries_are_inclusive(self, cpl, expected):
        classification, accuracy = classify_move(cpl)
        assert classification == expected
        assert accuracy == CLASSIFICATION_ACCURACY[expected]

    def test_accuracy_values(self):
        assert [classify_move(c)[1] for c in (0, 20, 50, 150, 500)] == [100, 90, 70, 40, 0]

    def test_accuracy_never_increases_with_loss(self):
        accuracies = [classify_move(cpl)[1] for cpl in range(0, 400)]
        assert all(a >= b for a, b in zip(accuracies, accuracies[1:]))

    def test_negative_loss_fails_loudly(self):
        with pytest.raises(ValueError):
            classify_move(-1)

    def test_float_loss(self):
        assert classify_move(10.5)[0] == MoveClassification.GOOD


class TestIsError:
    def test_errors(self):
        assert is_error(MoveClassification.INACCURACY)
        assert is_error(MoveClassification.MISTAKE)
        assert is_error(MoveClassification.BLUNDER)

    def test_non_errors(self):
        assert not is_error(MoveClassification.EXCELLENT)
        assert not is_error(MoveClassification.GOOD)
