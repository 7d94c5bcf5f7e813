from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Literal, Mapping

from scenariosignal.storage.bootstrap import DEFAULT_BOOTSTRAP, bootstrap_from_source
from scenariosignal.storage.kv_store import (
    GCSKeyValueStore,
    KeyValueStore,
    LocalKeyValueStore,
    PostgresKeyValueStore,
)
from scenariosignal.storage.scenario_store import ScenarioStore
from scenariosignal.storage.sink import sink_from_target

PrimaryStoreLiteral = Literal["local", "gcs", "postgres", "none"]

ENV_PREFIX = "SCENARIOSIGNAL_"
DEFAULT_MARKETS = ("gold", "oil", "dj")

_ALLOWED_PRIMARY = {"local", "gcs", "postgres", "none"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}
_BOOL_FIELDS = {"log_json"}
_INT_FIELDS = {"sink_max_retries"}
_FLOAT_FIELDS = {"request_timeout"}
_OPTIONAL_TEXT_FIELDS = {"data_dir", "gcs_bucket", "database_url", "sink_url"}


@dataclass(frozen=True)
class Settings:
    primary_store: PrimaryStoreLiteral = "local"
    data_dir: str | None = None
    gcs_bucket: str | None = None
    gcs_prefix: str = "scenariosignal"
    database_url: str | None = None
    bootstrap_source: str = DEFAULT_BOOTSTRAP
    sink_url: str | None = None
    request_timeout: float = 10.0
    sink_max_retries: int = 2
    markets: tuple[str, ...] = DEFAULT_MARKETS
    log_level: str = "INFO"
    log_json: bool = True

    def as_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return _find_repo_root(Path(__file__).resolve()) / "storage" / "scenarios"


def _find_repo_root(start: Path) -> Path:
    current = start.resolve()
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return Path.cwd()


def _default_config_path() -> Path:
    root = _find_repo_root(Path(__file__).resolve())
    return root / "config" / "scenariosignal.yaml"


def _parse_scalar(value: str) -> Any:
    cleaned = value.strip().strip("'\"")
    lowered = cleaned.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if cleaned.isdigit():
        return int(cleaned)
    return cleaned


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    values: dict[str, Any] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if ":" not in stripped:
            continue
        key, raw_value = stripped.split(":", 1)
        values[key.strip()] = _parse_scalar(raw_value)
    return values


def _env_values(environ: Mapping[str, str]) -> dict[str, Any]:
    valid_keys = set(Settings().as_dict().keys())
    values: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX) :].lower()
        if key in valid_keys:
            values[key] = raw
    if "database_url" not in values and environ.get("DATABASE_URL"):
        values["database_url"] = environ["DATABASE_URL"]
    return values


def _parse_markets(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    markets = tuple(str(item).strip() for item in items if str(item).strip())
    if not markets:
        raise ValueError("markets must name at least one market")
    return markets


def _apply_overrides(settings: Settings, values: Mapping[str, Any]) -> Settings:
    if not values:
        return settings
    valid_keys = set(settings.as_dict().keys())
    unknown = [key for key in values.keys() if key not in valid_keys]
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(sorted(unknown))}")
    updated: dict[str, Any] = {}
    for key, value in values.items():
        if key in _BOOL_FIELDS:
            if isinstance(value, str):
                updated[key] = value.strip().lower() in {"1", "true", "yes", "on"}
            else:
                updated[key] = bool(value)
            continue
        if key in _INT_FIELDS:
            try:
                updated[key] = int(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid int for {key}: {value}") from exc
            continue
        if key in _FLOAT_FIELDS:
            try:
                updated[key] = float(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid float for {key}: {value}") from exc
            continue
        if key in _OPTIONAL_TEXT_FIELDS:
            text = "" if value is None else str(value).strip()
            updated[key] = text or None
            continue
        if key == "primary_store":
            primary = str(value).strip().lower()
            if primary not in _ALLOWED_PRIMARY:
                raise ValueError(f"Unsupported primary_store: {primary}")
            updated[key] = primary
            continue
        if key == "log_level":
            level = str(value).strip().upper()
            if level not in _ALLOWED_LOG_LEVELS:
                raise ValueError(f"Unsupported log_level: {level}")
            updated[key] = level
            continue
        if key == "markets":
            updated[key] = _parse_markets(value)
            continue
        updated[key] = str(value)
    return replace(settings, **updated)


def apply_overrides(settings: Settings, values: Mapping[str, Any]) -> Settings:
    return _apply_overrides(settings, values)


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Defaults, then the config file, then ``SCENARIOSIGNAL_*`` variables, then ``overrides``."""
    settings = Settings()
    path = config_path or _default_config_path()
    settings = _apply_overrides(settings, _load_yaml(path))
    settings = _apply_overrides(settings, _env_values(os.environ if environ is None else environ))
    if overrides:
        settings = _apply_overrides(settings, overrides)
    return settings


def primary_store_from_settings(settings: Settings) -> KeyValueStore | None:
    mode = settings.primary_store
    if mode == "none":
        return None
    if mode == "gcs":
        if not settings.gcs_bucket:
            raise ValueError("gcs_bucket is required when primary_store=gcs.")
        return GCSKeyValueStore(bucket_name=settings.gcs_bucket, prefix=settings.gcs_prefix.strip("/"))
    if mode == "postgres":
        if not settings.database_url:
            raise ValueError("database_url is required when primary_store=postgres.")
        return PostgresKeyValueStore(database_url=settings.database_url)
    return LocalKeyValueStore(root_dir=settings.resolved_data_dir())


def build_store(settings: Settings) -> ScenarioStore:
    sink = None
    if settings.sink_url:
        sink = sink_from_target(
            settings.sink_url,
            timeout_seconds=settings.request_timeout,
            max_retries=settings.sink_max_retries,
        )
    return ScenarioStore(
        primary=primary_store_from_settings(settings),
        bootstrap=bootstrap_from_source(
            settings.bootstrap_source, timeout_seconds=settings.request_timeout
        ),
        sink=sink,
    )


__all__ = [
    "Settings",
    "apply_overrides",
    "load_settings",
    "primary_store_from_settings",
    "build_store",
]
