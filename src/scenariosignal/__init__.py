"""Scenario scoring and tiered scenario persistence."""

from scenariosignal.engine import evaluate, evaluate_scenario
from scenariosignal.errors import (
    ScenarioError,
    ScenarioFormatError,
    ScenarioNotFoundError,
    SinkError,
    StorageError,
)
from scenariosignal.models import (
    CollectedCondition,
    Condition,
    EvaluationResult,
    Option,
    Output,
    Scenario,
)
from scenariosignal.storage.scenario_store import ScenarioStore

__version__ = "0.1.0"

__all__ = [
    "evaluate",
    "evaluate_scenario",
    "ScenarioError",
    "ScenarioFormatError",
    "ScenarioNotFoundError",
    "SinkError",
    "StorageError",
    "CollectedCondition",
    "Condition",
    "EvaluationResult",
    "Option",
    "Output",
    "Scenario",
    "ScenarioStore",
]
