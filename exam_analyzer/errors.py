"""Errors raised by the analysis pipeline."""


class AnalysisError(Exception):
    """Base class - an analysis either completes or raises one of these."""


class EvaluatorUnavailable(AnalysisError):
    """The evaluator could not start or gave no usable answer."""


class EvaluatorTimeout(AnalysisError):
    """A single position query ran past its time budget."""


class MalformedGameRecord(AnalysisError):
    """The game record cannot be analysed (checked before any search)."""
