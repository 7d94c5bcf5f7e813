from __future__ import annotations

import asyncio
from typing import Any, Mapping

from scenariosignal.errors import ScenarioFormatError, StorageError
from scenariosignal.models import (
    ASSIGNMENTS_KEY,
    SCENARIOS_KEY,
    Scenario,
    default_scenarios,
    scenarios_from_payload,
    scenarios_to_payload,
)
from scenariosignal.observability import get_logger, observe
from scenariosignal.storage.bootstrap import BootstrapSource
from scenariosignal.storage.kv_store import KeyValueStore
from scenariosignal.storage.sink import ScenarioSink

logger = get_logger(__name__)


def _parse_assignments(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ScenarioFormatError("Market assignments must be an object.", path="$")
    return {str(market): str(scenario_id) for market, scenario_id in raw.items()}


class ScenarioStore:
    """Tiered persistence for scenario definitions and market assignments.

    Loads resolve primary tier, then the bootstrap document, then the built-in
    default and never raise. Saves go to the primary tier when one is
    configured, otherwise to the sink, and raise on failure.

    Assignment mutators read, modify and write the whole assignment record;
    concurrent callers can overwrite each other (last writer wins).
    """

    def __init__(
        self,
        primary: KeyValueStore | None = None,
        bootstrap: BootstrapSource | None = None,
        sink: ScenarioSink | None = None,
    ) -> None:
        self.primary = primary
        self.bootstrap = bootstrap
        self.sink = sink
        # Without a primary tier assignments only live for this store instance.
        self._session_assignments: dict[str, str] = {}

    @property
    def has_primary(self) -> bool:
        return self.primary is not None

    def _read_primary_scenarios(self) -> tuple[dict[str, Scenario] | None, bool]:
        """Returns (scenarios, record_exists)."""
        if self.primary is None:
            return None, False
        try:
            raw = self.primary.get(SCENARIOS_KEY)
        except StorageError as exc:
            logger.warning(f"Primary tier read failed: {exc}")
            return None, True
        if raw is None:
            return None, False
        try:
            return scenarios_from_payload({"scenarios": raw}), True
        except ScenarioFormatError as exc:
            logger.warning(f"Stored scenarios are malformed, ignoring them: {exc}")
            return None, True

    def _fetch_bootstrap(self) -> dict[str, Scenario] | None:
        if self.bootstrap is None:
            return None
        try:
            document = self.bootstrap.fetch()
            return scenarios_from_payload(document)
        except Exception as exc:
            logger.error(f"Error loading bootstrap scenarios: {exc}")
            return None

    def _load(self) -> dict[str, Scenario]:
        scenarios, record_exists = self._read_primary_scenarios()
        if scenarios is not None:
            return scenarios

        scenarios = self._fetch_bootstrap()
        if scenarios is None:
            logger.warning("Falling back to the built-in default scenario.")
            return default_scenarios()

        if self.primary is not None and not record_exists:
            try:
                self.primary.set(SCENARIOS_KEY, scenarios_to_payload(scenarios))
            except StorageError as exc:
                logger.warning(f"Unable to cache bootstrap scenarios: {exc}")
        return scenarios

    def _save(self, scenarios: Mapping[str, Scenario]) -> None:
        payload = scenarios_to_payload(scenarios)
        if self.primary is not None:
            self.primary.set(SCENARIOS_KEY, payload)
            return
        if self.sink is None:
            raise StorageError("No storage tier is available for saving scenarios.")
        logger.info(f"Primary tier unavailable, sending {len(payload)} scenarios to sink.")
        self.sink.send({"scenarios": payload})

    def _read_assignments(self) -> dict[str, str]:
        if self.primary is None:
            return dict(self._session_assignments)
        return _parse_assignments(self.primary.get(ASSIGNMENTS_KEY))

    def _write_assignments(self, assignments: Mapping[str, str]) -> None:
        clean = {str(market): str(scenario_id) for market, scenario_id in assignments.items()}
        if self.primary is None:
            logger.warning("Primary tier unavailable, market assignments kept for this session only.")
            self._session_assignments = clean
            return
        self.primary.set(ASSIGNMENTS_KEY, clean)

    @observe()
    async def load_scenarios(self) -> dict[str, Scenario]:
        return await asyncio.to_thread(self._load)

    @observe()
    async def save_scenarios(self, scenarios: Mapping[str, Scenario]) -> None:
        await asyncio.to_thread(self._save, dict(scenarios))

    @observe()
    async def get_market_assignments(self) -> dict[str, str]:
        try:
            return await asyncio.to_thread(self._read_assignments)
        except (StorageError, ScenarioFormatError) as exc:
            logger.error(f"Error getting market assignments: {exc}")
            return {}

    @observe()
    async def save_market_assignments(self, assignments: Mapping[str, str]) -> None:
        await asyncio.to_thread(self._write_assignments, dict(assignments))

    @observe()
    async def assign_scenario_to_market(self, market: str, scenario_id: str) -> dict[str, str]:
        # Read failures propagate so a broken record is never replaced by a partial map.
        assignments = await asyncio.to_thread(self._read_assignments)
        assignments[market] = scenario_id
        await asyncio.to_thread(self._write_assignments, assignments)
        return assignments

    @observe()
    async def unassign_scenario_from_market(self, market: str) -> dict[str, str]:
        assignments = await asyncio.to_thread(self._read_assignments)
        assignments.pop(market, None)
        await asyncio.to_thread(self._write_assignments, assignments)
        return assignments


__all__ = ["ScenarioStore"]
