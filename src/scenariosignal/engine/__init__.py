"""Scenario evaluation engine."""

from .collect import collect_conditions
from .evaluate import condition_contribution, evaluate, evaluate_scenario, select_output
from .predict import MarketPrediction, format_prediction, predict_market, predict_markets

__all__ = [
    "collect_conditions",
    "condition_contribution",
    "evaluate",
    "evaluate_scenario",
    "select_output",
    "MarketPrediction",
    "format_prediction",
    "predict_market",
    "predict_markets",
]
