from __future__ import annotations

from typing import Any, Mapping

from scenariosignal.models import CollectedCondition, Scenario
from scenariosignal.observability import get_logger

logger = get_logger(__name__)

UNKNOWN_LABEL = "Unknown condition"


def _collect_value(kind: str, raw: Any) -> Any:
    if kind in ("radio", "select"):
        if raw is None:
            return None
        return str(raw)
    if kind == "checkbox":
        return bool(raw)
    if kind == "text":
        if raw is None:
            return None
        return str(raw).strip()
    return None


def collect_conditions(
    scenario: Scenario, raw_values: Mapping[str, Any] | None
) -> dict[str, CollectedCondition]:
    """Build one collected answer per scenario condition from raw caller input.

    Radio and select answers are the chosen option value, checkboxes default
    to unchecked, text answers are stripped. Raw values for keys the scenario
    does not define are ignored.
    """
    raw_values = raw_values or {}
    collected: dict[str, CollectedCondition] = {}
    for key, condition in scenario.conditions.items():
        value = _collect_value(condition.kind, raw_values.get(key))
        if value is None:
            logger.debug(f"Condition '{key}' has missing value.")
        collected[key] = CollectedCondition(
            label=condition.label or UNKNOWN_LABEL,
            kind=condition.kind,
            value=value,
            weight=condition.weight,
        )
    return collected
