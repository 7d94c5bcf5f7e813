from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from scenariosignal.engine.collect import collect_conditions
from scenariosignal.engine.evaluate import evaluate
from scenariosignal.models import NEUTRAL, EvaluationResult, Scenario
from scenariosignal.observability import get_logger

logger = get_logger(__name__)

UNASSIGNED_MESSAGE = "No scenario assigned"


@dataclass(frozen=True)
class MarketPrediction:
    market: str
    scenario_id: str | None
    result: EvaluationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "scenario_id": self.scenario_id,
            **self.result.to_dict(),
        }


def predict_market(
    market: str,
    scenarios: Mapping[str, Scenario],
    assignments: Mapping[str, str],
    raw_values: Mapping[str, Any] | None = None,
) -> MarketPrediction:
    scenario_id = assignments.get(market)
    if not scenario_id:
        return MarketPrediction(
            market=market,
            scenario_id=None,
            result=EvaluationResult(kind=NEUTRAL, message=UNASSIGNED_MESSAGE, score=0.0),
        )
    scenario = scenarios.get(scenario_id)
    if scenario is None:
        logger.error(f"Scenario '{scenario_id}' assigned to market '{market}' does not exist.")
        return MarketPrediction(market=market, scenario_id=scenario_id, result=evaluate(None, {}))
    collected = collect_conditions(scenario, raw_values)
    return MarketPrediction(
        market=market,
        scenario_id=scenario_id,
        result=evaluate(scenario, collected),
    )


def predict_markets(
    scenarios: Mapping[str, Scenario],
    assignments: Mapping[str, str],
    markets: Sequence[str],
    raw_values_by_market: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[MarketPrediction]:
    raw_values_by_market = raw_values_by_market or {}
    return [
        predict_market(market, scenarios, assignments, raw_values_by_market.get(market))
        for market in markets
    ]


def _format_score(score: float) -> str:
    if float(score).is_integer():
        return str(int(score))
    return f"{score:g}"


def format_prediction(prediction: MarketPrediction) -> str:
    message = prediction.result.message
    if prediction.result.score:
        message = f"{message} (Strength: {_format_score(prediction.result.score)})"
    return f"{prediction.market.upper()}: {message}"
