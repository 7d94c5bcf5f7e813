from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

import jsonschema
from jsonschema import Draft202012Validator

from scenariosignal.errors import ScenarioFormatError

SCENARIOS_SCHEMA = "scenarios.schema"


class SchemaValidationError(ScenarioFormatError):
    """Raised when JSON schema validation fails."""

    def __init__(self, schema_name: str, message: str, path: str = "$") -> None:
        super().__init__(f"Schema '{schema_name}' validation error: {message}", path=path)
        self.schema_name = schema_name


def _format_path(path: Iterable[object]) -> str:
    formatted = "$"
    for part in path:
        if isinstance(part, int):
            formatted += f"[{part}]"
        else:
            formatted += f".{part}"
    return formatted


def _default_schemas_dir() -> Path:
    # __file__ is src/scenariosignal/schema_validate.py
    return Path(__file__).resolve().parent / "schemas"


@lru_cache(maxsize=None)
def _cached_schema(schema_path: Path) -> dict[str, Any]:
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    if "$id" not in schema:
        schema["$id"] = schema_path.resolve().as_uri()
    return schema


def load_schema(schema_name: str, schemas_dir: Path | None = None) -> dict[str, Any]:
    if schemas_dir is None:
        schemas_dir = _default_schemas_dir()
    schema_path = schemas_dir / f"{schema_name}.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return _cached_schema(schema_path)


def validate_schema(instance: Any, schema: dict[str, Any], schema_name: str) -> None:
    validator = Draft202012Validator(schema, format_checker=jsonschema.FormatChecker())
    errors = sorted(
        validator.iter_errors(instance),
        key=lambda error: _format_path(error.absolute_path),
    )
    if not errors:
        return
    error = errors[0]
    path = _format_path(error.absolute_path)
    raise SchemaValidationError(schema_name, error.message, path=path)


def validate_document(
    instance: Any, schema_name: str = SCENARIOS_SCHEMA, schemas_dir: Path | None = None
) -> None:
    schema = load_schema(schema_name, schemas_dir=schemas_dir)
    validate_schema(instance, schema, schema_name)
