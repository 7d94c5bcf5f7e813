from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

from scenariosignal.errors import SinkError


class ScenarioSink(Protocol):
    """Secondary save target used when the primary tier is unavailable."""

    def send(self, document: Mapping[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class HttpScenarioSink:
    url: str
    timeout_seconds: float | None = 10.0
    max_retries: int = 2
    backoff_seconds: float = 1.0
    retry_statuses: tuple[int, ...] = (429, 500, 502, 503, 504)

    def send(self, document: Mapping[str, Any]) -> None:
        import requests

        def _sleep_backoff(response, attempt: int) -> None:
            retry_after = response.headers.get("Retry-After") if response else None
            delay = None
            if isinstance(retry_after, str) and retry_after.strip().isdigit():
                delay = float(retry_after.strip())
            if delay is None:
                delay = self.backoff_seconds * (2 ** attempt)
            time.sleep(min(delay, 30.0))

        for attempt in range(self.max_retries + 1):
            try:
                response = requests.post(
                    self.url,
                    headers={"Content-Type": "application/json"},
                    json=dict(document),
                    timeout=self.timeout_seconds,
                )
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * (2 ** attempt))
                    continue
                raise SinkError(f"Scenario sink unreachable: {exc}") from exc

            if response.status_code in self.retry_statuses and attempt < self.max_retries:
                _sleep_backoff(response, attempt)
                continue
            if not response.ok:
                raise SinkError(
                    f"HTTP error! status: {response.status_code}",
                    status_code=response.status_code,
                )
            return


@dataclass(frozen=True)
class FileScenarioSink:
    path: Path

    def send(self, document: Mapping[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(dict(document), indent=2), encoding="utf-8")
        except OSError as exc:
            raise SinkError(f"Unable to write scenarios to {self.path}.") from exc


def sink_from_target(
    target: str, timeout_seconds: float | None = 10.0, max_retries: int = 2
) -> ScenarioSink:
    value = target.strip()
    if value.startswith(("http://", "https://")):
        return HttpScenarioSink(url=value, timeout_seconds=timeout_seconds, max_retries=max_retries)
    return FileScenarioSink(path=Path(value))


__all__ = ["ScenarioSink", "HttpScenarioSink", "FileScenarioSink", "sink_from_target"]
