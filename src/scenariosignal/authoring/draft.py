from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Mapping

from scenariosignal.authoring.export import export_scenarios
from scenariosignal.errors import ScenarioFormatError, ScenarioNotFoundError
from scenariosignal.models import (
    CONDITION_KINDS,
    Condition,
    Option,
    Output,
    Scenario,
)
from scenariosignal.observability import get_logger
from scenariosignal.storage.scenario_store import ScenarioStore

logger = get_logger(__name__)

NEW_SCENARIO_NAME = "New scenario"
NEW_CONDITION_LABEL = "New condition"
NEW_OPTION_LABEL = "New option"
NEW_OUTPUT_MESSAGE = "New output"

_UNSET = object()


def lint_scenarios(scenarios: Mapping[str, Scenario]) -> list[str]:
    """Authoring problems that do not block saving but make evaluation ambiguous."""
    issues: list[str] = []
    for scenario_id, scenario in scenarios.items():
        if not scenario.name.strip():
            issues.append(f"{scenario_id}: scenario has no name")
        for key, condition in scenario.conditions.items():
            if condition.uses_options:
                seen: set[str] = set()
                for option in condition.options:
                    if option.value in seen:
                        issues.append(
                            f"{scenario_id}.{key}: duplicate option value {option.value!r}"
                        )
                    seen.add(option.value)
            elif condition.options:
                issues.append(f"{scenario_id}.{key}: options are ignored for {condition.kind} conditions")
        for key, output in scenario.outputs.items():
            if output.threshold is None:
                issues.append(f"{scenario_id}.{key}: output has no threshold")
    return issues


class ScenarioDraft:
    """Editable working copy of the scenario map.

    Nothing here is persisted until :meth:`save` hands the map to a store.
    Generated keys are ``<prefix>_<epoch millis>`` and are never handed out
    twice by the same draft, even after the owning entry is deleted.
    """

    def __init__(
        self,
        scenarios: Mapping[str, Scenario] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.scenarios: dict[str, Scenario] = dict(scenarios or {})
        self._clock = clock
        self._issued: set[str] = set(self.scenarios)
        for scenario in self.scenarios.values():
            self._issued.update(scenario.conditions)
            self._issued.update(scenario.outputs)

    def _new_key(self, prefix: str) -> str:
        stamp = int(self._clock() * 1000)
        key = f"{prefix}_{stamp}"
        while key in self._issued:
            stamp += 1
            key = f"{prefix}_{stamp}"
        self._issued.add(key)
        return key

    def _scenario(self, scenario_id: str) -> Scenario:
        scenario = self.scenarios.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError("scenario", scenario_id)
        return scenario

    def _condition(self, scenario_id: str, key: str) -> Condition:
        condition = self._scenario(scenario_id).conditions.get(key)
        if condition is None:
            raise ScenarioNotFoundError("condition", f"{scenario_id}.{key}")
        return condition

    def _put_condition(self, scenario_id: str, key: str, condition: Condition) -> None:
        scenario = self._scenario(scenario_id)
        conditions = dict(scenario.conditions)
        conditions[key] = condition
        self.scenarios[scenario_id] = replace(scenario, conditions=conditions)

    def _put_output(self, scenario_id: str, key: str, output: Output) -> None:
        scenario = self._scenario(scenario_id)
        outputs = dict(scenario.outputs)
        outputs[key] = output
        self.scenarios[scenario_id] = replace(scenario, outputs=outputs)

    async def load(self, store: ScenarioStore) -> bool:
        """Fill an empty draft from ``store``; a draft with content is left untouched."""
        if self.scenarios:
            return False
        loaded = await store.load_scenarios()
        self.scenarios = dict(loaded)
        self._issued.update(loaded)
        return True

    async def save(self, store: ScenarioStore, *, strict: bool = False) -> str:
        """Persist the draft through ``store`` and return the export document."""
        if strict:
            issues = self.lint()
            if issues:
                raise ScenarioFormatError("; ".join(issues))
        await store.save_scenarios(self.scenarios)
        logger.info(f"Saved {len(self.scenarios)} scenarios from draft.")
        return export_scenarios(self.scenarios)

    def lint(self) -> list[str]:
        return lint_scenarios(self.scenarios)

    def add_scenario(self, name: str = NEW_SCENARIO_NAME) -> str:
        scenario_id = self._new_key("scenario")
        self.scenarios[scenario_id] = Scenario(id=scenario_id, name=name)
        return scenario_id

    def rename_scenario(self, scenario_id: str, name: str) -> None:
        self.scenarios[scenario_id] = replace(self._scenario(scenario_id), name=name)

    def delete_scenario(self, scenario_id: str) -> None:
        self._scenario(scenario_id)
        del self.scenarios[scenario_id]

    def add_condition(self, scenario_id: str) -> str:
        self._scenario(scenario_id)
        key = self._new_key("condition")
        self._put_condition(
            scenario_id, key, Condition(label=NEW_CONDITION_LABEL, kind="text", weight=0.0)
        )
        return key

    def update_condition(
        self,
        scenario_id: str,
        key: str,
        *,
        label: str | None = None,
        kind: str | None = None,
        weight: float | None = None,
    ) -> Condition:
        condition = self._condition(scenario_id, key)
        if kind is not None and kind not in CONDITION_KINDS:
            raise ScenarioFormatError(f"Unsupported condition kind: {kind!r}")
        updated = replace(
            condition,
            label=condition.label if label is None else label,
            kind=condition.kind if kind is None else kind,
            weight=condition.weight if weight is None else float(weight),
        )
        if updated.uses_options and not updated.options:
            updated = replace(updated, options=(Option(value="", label=NEW_OPTION_LABEL),))
        self._put_condition(scenario_id, key, updated)
        return updated

    def delete_condition(self, scenario_id: str, key: str) -> None:
        self._condition(scenario_id, key)
        scenario = self._scenario(scenario_id)
        conditions = {k: v for k, v in scenario.conditions.items() if k != key}
        self.scenarios[scenario_id] = replace(scenario, conditions=conditions)

    def add_option(
        self,
        scenario_id: str,
        key: str,
        *,
        value: str = "",
        label: str = NEW_OPTION_LABEL,
        weight: float = 0.0,
    ) -> int:
        condition = self._condition(scenario_id, key)
        options = condition.options + (Option(value=value, label=label, weight=float(weight)),)
        self._put_condition(scenario_id, key, replace(condition, options=options))
        return len(options) - 1

    def update_option(
        self,
        scenario_id: str,
        key: str,
        index: int,
        *,
        value: str | None = None,
        label: str | None = None,
        weight: float | None = None,
    ) -> Option:
        condition = self._condition(scenario_id, key)
        if not 0 <= index < len(condition.options):
            raise ScenarioNotFoundError("option", f"{scenario_id}.{key}[{index}]")
        current = condition.options[index]
        option = Option(
            value=current.value if value is None else value,
            label=current.label if label is None else label,
            weight=current.weight if weight is None else float(weight),
        )
        options = list(condition.options)
        options[index] = option
        self._put_condition(scenario_id, key, replace(condition, options=tuple(options)))
        return option

    def delete_option(self, scenario_id: str, key: str, index: int) -> None:
        condition = self._condition(scenario_id, key)
        if not 0 <= index < len(condition.options):
            raise ScenarioNotFoundError("option", f"{scenario_id}.{key}[{index}]")
        options = condition.options[:index] + condition.options[index + 1 :]
        self._put_condition(scenario_id, key, replace(condition, options=options))

    def add_output(
        self,
        scenario_id: str,
        *,
        threshold: float = 0.0,
        message: str = NEW_OUTPUT_MESSAGE,
        kind: str | None = None,
    ) -> str:
        self._scenario(scenario_id)
        key = self._new_key("output")
        self._put_output(
            scenario_id, key, Output(threshold=float(threshold), message=message, kind=kind)
        )
        return key

    def update_output(
        self,
        scenario_id: str,
        key: str,
        *,
        threshold: float | None = None,
        message: str | None = None,
        kind: object = _UNSET,
    ) -> Output:
        output = self._scenario(scenario_id).outputs.get(key)
        if output is None:
            raise ScenarioNotFoundError("output", f"{scenario_id}.{key}")
        updated = replace(
            output,
            threshold=output.threshold if threshold is None else float(threshold),
            message=output.message if message is None else message,
            kind=output.kind if kind is _UNSET else kind,
        )
        self._put_output(scenario_id, key, updated)
        return updated

    def delete_output(self, scenario_id: str, key: str) -> None:
        scenario = self._scenario(scenario_id)
        if key not in scenario.outputs:
            raise ScenarioNotFoundError("output", f"{scenario_id}.{key}")
        outputs = {k: v for k, v in scenario.outputs.items() if k != key}
        self.scenarios[scenario_id] = replace(scenario, outputs=outputs)


__all__ = ["ScenarioDraft", "lint_scenarios"]
