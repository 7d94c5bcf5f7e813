from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from scenariosignal.errors import ScenarioFormatError
from scenariosignal.schema_validate import validate_document

ConditionKind = Literal["radio", "checkbox", "text", "select"]

CONDITION_KINDS: frozenset[str] = frozenset({"radio", "checkbox", "text", "select"})
OPTION_KINDS: frozenset[str] = frozenset({"radio", "select"})

NEUTRAL = "neutral"
ERROR = "error"
BULLISH = "bullish"
BEARISH = "bearish"

SCENARIOS_KEY = "tradingScenarios"
ASSIGNMENTS_KEY = "marketAssignments"
EXPORT_VERSION = "1.0"

DEFAULT_SCENARIO_ID = "bullishBreakout"
DEFAULT_SCENARIO_NAME = "Bullish Breakout"


def _as_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return number


def _as_threshold(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _kind_of(payload: Mapping[str, Any]) -> Any:
    # Stored documents use "type"; "kind" is accepted as an alias.
    if payload.get("type") is not None:
        return payload.get("type")
    return payload.get("kind")


@dataclass(frozen=True)
class Option:
    value: str
    label: str = ""
    weight: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Option":
        return cls(
            value=_as_text(payload.get("value")),
            label=_as_text(payload.get("label")),
            weight=_as_float(payload.get("weight")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "label": self.label, "weight": self.weight}


@dataclass(frozen=True)
class Condition:
    label: str
    kind: ConditionKind
    weight: float = 0.0
    options: tuple[Option, ...] = ()

    @property
    def uses_options(self) -> bool:
        return self.kind in OPTION_KINDS

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Condition":
        kind = _kind_of(payload)
        if kind not in CONDITION_KINDS:
            raise ScenarioFormatError(f"Unsupported condition kind: {kind!r}")
        options = payload.get("options") or []
        return cls(
            label=_as_text(payload.get("label")),
            kind=kind,
            weight=_as_float(payload.get("weight")),
            options=tuple(Option.from_dict(item) for item in options),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "label": self.label,
            "type": self.kind,
            "weight": self.weight,
        }
        if self.options:
            payload["options"] = [option.to_dict() for option in self.options]
        return payload


@dataclass(frozen=True)
class Output:
    threshold: float | None
    message: str = ""
    kind: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Output":
        kind = _kind_of(payload)
        return cls(
            threshold=_as_threshold(payload.get("threshold")),
            message=_as_text(payload.get("message")),
            kind=str(kind) if kind else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"threshold": self.threshold, "message": self.message}
        if self.kind:
            payload["type"] = self.kind
        return payload


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    conditions: Mapping[str, Condition] = field(default_factory=dict)
    outputs: Mapping[str, Output] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, scenario_id: str, payload: Mapping[str, Any]) -> "Scenario":
        conditions: dict[str, Condition] = {}
        for key, item in (payload.get("conditions") or {}).items():
            try:
                conditions[str(key)] = Condition.from_dict(item)
            except ScenarioFormatError as exc:
                raise ScenarioFormatError(
                    exc.detail, path=f"$.scenarios.{scenario_id}.conditions.{key}"
                ) from exc
        outputs = {
            str(key): Output.from_dict(item)
            for key, item in (payload.get("outputs") or {}).items()
        }
        return cls(
            id=str(scenario_id),
            name=_as_text(payload.get("name")),
            conditions=conditions,
            outputs=outputs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "conditions": {key: item.to_dict() for key, item in self.conditions.items()},
            "outputs": {key: item.to_dict() for key, item in self.outputs.items()},
        }


@dataclass(frozen=True)
class CollectedCondition:
    """A caller-collected answer for one condition, alive for a single evaluation."""

    label: str
    kind: str
    value: Any
    weight: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CollectedCondition":
        return cls(
            label=_as_text(payload.get("label")),
            kind=_as_text(_kind_of(payload)),
            value=payload.get("value"),
            weight=_as_float(payload.get("weight")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "type": self.kind,
            "value": self.value,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class EvaluationResult:
    kind: str
    message: str
    score: float
    contributions: Mapping[str, float] = field(default_factory=dict)
    reason: str | None = None

    @property
    def is_error(self) -> bool:
        return self.kind == ERROR

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.kind,
            "message": self.message,
            "score": self.score,
            "contributions": dict(self.contributions),
        }
        if self.reason:
            payload["reason"] = self.reason
        return payload


def scenarios_from_payload(payload: Any) -> dict[str, Scenario]:
    """Validate a ``{"scenarios": {...}}`` document and build typed scenarios."""
    validate_document(payload)
    return {
        str(scenario_id): Scenario.from_dict(str(scenario_id), item)
        for scenario_id, item in payload["scenarios"].items()
    }


def scenarios_to_payload(scenarios: Mapping[str, Scenario]) -> dict[str, Any]:
    return {scenario_id: scenario.to_dict() for scenario_id, scenario in scenarios.items()}


def default_scenarios() -> dict[str, Scenario]:
    return {
        DEFAULT_SCENARIO_ID: Scenario(id=DEFAULT_SCENARIO_ID, name=DEFAULT_SCENARIO_NAME),
    }


def coerce_collected(
    collected: Mapping[str, CollectedCondition | Mapping[str, Any]],
) -> dict[str, CollectedCondition]:
    coerced: dict[str, CollectedCondition] = {}
    for key, item in collected.items():
        if isinstance(item, CollectedCondition):
            coerced[str(key)] = item
        else:
            coerced[str(key)] = CollectedCondition.from_dict(item)
    return coerced


__all__ = [
    "ConditionKind",
    "CONDITION_KINDS",
    "OPTION_KINDS",
    "NEUTRAL",
    "ERROR",
    "BULLISH",
    "BEARISH",
    "SCENARIOS_KEY",
    "ASSIGNMENTS_KEY",
    "EXPORT_VERSION",
    "DEFAULT_SCENARIO_ID",
    "DEFAULT_SCENARIO_NAME",
    "Option",
    "Condition",
    "Output",
    "Scenario",
    "CollectedCondition",
    "EvaluationResult",
    "scenarios_from_payload",
    "scenarios_to_payload",
    "default_scenarios",
    "coerce_collected",
]
