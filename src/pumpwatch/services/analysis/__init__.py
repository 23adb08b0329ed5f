"""Signal and risk evaluation."""

from pumpwatch.services.analysis.signal_evaluator import SignalEvaluator

__all__ = ["SignalEvaluator"]
