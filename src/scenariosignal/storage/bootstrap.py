from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Protocol

PACKAGE_PREFIX = "package:"
DEFAULT_BOOTSTRAP = f"{PACKAGE_PREFIX}scenarios.json"


class BootstrapSource(Protocol):
    """Supplies the ``{"scenarios": {...}}`` document used to seed an empty store."""

    def fetch(self) -> Any:
        ...


@dataclass(frozen=True)
class PackageBootstrap:
    resource: str = "scenarios.json"

    def fetch(self) -> Any:
        data = resources.files("scenariosignal").joinpath("data", self.resource).read_text(
            encoding="utf-8"
        )
        return json.loads(data)


@dataclass(frozen=True)
class FileBootstrap:
    path: Path

    def fetch(self) -> Any:
        return json.loads(self.path.read_text(encoding="utf-8"))


@dataclass(frozen=True)
class HttpBootstrap:
    url: str
    timeout_seconds: float | None = 10.0

    def fetch(self) -> Any:
        import requests

        response = requests.get(self.url, timeout=self.timeout_seconds)
        response.raise_for_status()
        return response.json()


def bootstrap_from_source(source: str, timeout_seconds: float | None = 10.0) -> BootstrapSource:
    """Resolve a configured source: ``package:<name>``, an http(s) URL or a file path."""
    value = source.strip()
    if value.startswith(PACKAGE_PREFIX):
        return PackageBootstrap(resource=value[len(PACKAGE_PREFIX) :])
    if value.startswith(("http://", "https://")):
        return HttpBootstrap(url=value, timeout_seconds=timeout_seconds)
    return FileBootstrap(path=Path(value))


__all__ = [
    "BootstrapSource",
    "PackageBootstrap",
    "FileBootstrap",
    "HttpBootstrap",
    "bootstrap_from_source",
    "DEFAULT_BOOTSTRAP",
]
