from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from scenariosignal.errors import ScenarioFormatError
from scenariosignal.models import (
    EXPORT_VERSION,
    Scenario,
    scenarios_from_payload,
    scenarios_to_payload,
)


def export_scenarios(scenarios: Mapping[str, Scenario]) -> str:
    """Pretty-printed backup document for ``scenarios``."""
    return json.dumps(
        {"version": EXPORT_VERSION, "scenarios": scenarios_to_payload(scenarios)},
        indent=2,
    )


def import_scenarios(text: str) -> dict[str, Scenario]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScenarioFormatError(f"Invalid JSON: {exc.msg}") from exc
    if isinstance(document, dict) and "version" in document:
        version = document["version"]
        if version != EXPORT_VERSION:
            raise ScenarioFormatError(f"Unsupported export version: {version!r}", path="$.version")
    return scenarios_from_payload(document)


def write_export(path: Path, scenarios: Mapping[str, Scenario]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_scenarios(scenarios), encoding="utf-8")
    return path


def read_export(path: Path) -> dict[str, Scenario]:
    return import_scenarios(path.read_text(encoding="utf-8"))
