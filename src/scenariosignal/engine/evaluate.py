from __future__ import annotations

from typing import Any, Mapping

from scenariosignal.models import (
    ERROR,
    NEUTRAL,
    CollectedCondition,
    Condition,
    EvaluationResult,
    Output,
    Scenario,
    coerce_collected,
)
from scenariosignal.observability import get_logger

logger = get_logger(__name__)

NEUTRAL_MESSAGE = "Neutral signal"
UNKNOWN_MESSAGE = "Unknown result"
ERROR_MESSAGE = "Analysis error"

REASON_NOT_FOUND = "scenario_not_found"
REASON_INTERNAL = "internal_error"


def _option_weight(key: str, condition: Condition, value: Any) -> float:
    for option in condition.options:
        if option.value == value:
            return option.weight
    logger.warning(f"No matching option found for condition '{key}' (value: {value!r}).")
    return 0.0


def condition_contribution(
    key: str, condition: Condition, collected: CollectedCondition
) -> float:
    """Score contribution of one collected answer against its scenario condition."""
    if collected.value is None:
        logger.debug(f"Condition '{key}' has missing value.")
        return 0.0
    kind = collected.kind
    if kind in ("radio", "select"):
        return _option_weight(key, condition, collected.value)
    if kind == "checkbox":
        return condition.weight if collected.value else 0.0
    if kind == "text":
        return condition.weight
    logger.warning(f"Unknown condition type: '{kind}' for key '{key}'.")
    return 0.0


def select_output(outputs: Mapping[str, Output], score: float) -> Output | None:
    """Highest threshold not above ``score``; the first one wins on equal thresholds."""
    best: Output | None = None
    for output in outputs.values():
        if output.threshold is None or output.threshold > score:
            continue
        if best is None or output.threshold > best.threshold:  # type: ignore[operator]
            best = output
    return best


def _score(
    scenario: Scenario, collected: Mapping[str, CollectedCondition]
) -> tuple[float, dict[str, float]]:
    contributions: dict[str, float] = {}
    total = 0.0
    for key in sorted(collected.keys()):
        condition = scenario.conditions.get(key)
        if condition is None:
            logger.warning(f"Condition '{key}' not defined in scenario '{scenario.id}'.")
            continue
        contribution = condition_contribution(key, condition, collected[key])
        contributions[key] = contribution
        total += contribution
    return total, contributions


def _as_scenario(scenario: Scenario | Mapping[str, Any]) -> Scenario:
    if isinstance(scenario, Scenario):
        return scenario
    if isinstance(scenario, Mapping):
        return Scenario.from_dict(str(scenario.get("id") or ""), scenario)
    raise TypeError(f"Cannot evaluate {type(scenario).__name__} as a scenario.")


def evaluate(
    scenario: Scenario | Mapping[str, Any] | None,
    collected: Mapping[str, CollectedCondition | Mapping[str, Any]],
) -> EvaluationResult:
    """Score collected answers against ``scenario`` and pick the matching output.

    ``scenario`` may also be a plain definition mapping in the stored wire
    format. Never raises: a missing scenario or malformed input yields an
    ``error`` result with a zero score.
    """
    if scenario is None:
        logger.error("Scenario not found for evaluation.")
        return EvaluationResult(
            kind=ERROR, message=ERROR_MESSAGE, score=0.0, reason=REASON_NOT_FOUND
        )
    scenario_id = getattr(scenario, "id", None)
    try:
        definition = _as_scenario(scenario)
        scenario_id = definition.id
        answers = coerce_collected(collected)
        score, contributions = _score(definition, answers)
        output = select_output(definition.outputs, score)
    except Exception:
        logger.exception(f"Error evaluating scenario '{scenario_id}'.")
        return EvaluationResult(
            kind=ERROR, message=ERROR_MESSAGE, score=0.0, reason=REASON_INTERNAL
        )

    if output is None:
        logger.info(f"Neutral signal for scenario '{scenario_id}': no thresholds met.")
        return EvaluationResult(
            kind=NEUTRAL, message=NEUTRAL_MESSAGE, score=score, contributions=contributions
        )
    logger.info(
        f"Best output for scenario '{scenario_id}': {output.message} "
        f"(threshold: {output.threshold}, score: {score})"
    )
    return EvaluationResult(
        kind=output.kind or NEUTRAL,
        message=output.message or UNKNOWN_MESSAGE,
        score=score,
        contributions=contributions,
    )


def evaluate_scenario(
    scenarios: Mapping[str, Scenario],
    scenario_id: str,
    collected: Mapping[str, CollectedCondition | Mapping[str, Any]],
) -> EvaluationResult:
    return evaluate(scenarios.get(scenario_id), collected)
