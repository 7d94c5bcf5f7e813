import json
from pathlib import Path

import pytest
import requests

from scenariosignal.errors import SinkError
from scenariosignal.storage import sink as sink_module
from scenariosignal.storage.bootstrap import (
    FileBootstrap,
    HttpBootstrap,
    PackageBootstrap,
    bootstrap_from_source,
)
from scenariosignal.storage.sink import FileScenarioSink, HttpScenarioSink, sink_from_target


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, headers=None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


def test_http_sink_posts_document(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def _post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return _FakeResponse(200)

    monkeypatch.setattr(requests, "post", _post)
    sink = HttpScenarioSink(url="http://localhost:8000/scenarios.json", timeout_seconds=3)

    sink.send({"scenarios": {}})

    assert calls == [
        {"url": "http://localhost:8000/scenarios.json", "json": {"scenarios": {}}, "timeout": 3}
    ]


def test_http_sink_raises_with_status_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: _FakeResponse(400))
    sink = HttpScenarioSink(url="http://localhost:8000/scenarios.json")

    with pytest.raises(SinkError) as exc:
        sink.send({"scenarios": {}})

    assert exc.value.status_code == 400
    assert str(exc.value) == "HTTP error! status: 400"


def test_http_sink_retries_server_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    responses = [_FakeResponse(503, headers={"Retry-After": "0"}), _FakeResponse(200)]
    sleeps = []
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: responses.pop(0))
    monkeypatch.setattr(sink_module.time, "sleep", sleeps.append)
    sink = HttpScenarioSink(url="http://localhost:8000/scenarios.json", max_retries=1)

    sink.send({"scenarios": {}})

    assert responses == []
    assert sleeps == [0.0]


def test_http_sink_wraps_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", _post)
    monkeypatch.setattr(sink_module.time, "sleep", lambda _: None)
    sink = HttpScenarioSink(url="http://localhost:8000/scenarios.json", max_retries=2)

    with pytest.raises(SinkError, match="unreachable") as exc:
        sink.send({"scenarios": {}})

    assert exc.value.status_code is None


def test_file_sink_writes_pretty_document(tmp_path: Path) -> None:
    target = tmp_path / "out" / "scenarios.json"

    FileScenarioSink(path=target).send({"scenarios": {"a": {"name": "A"}}})

    assert json.loads(target.read_text(encoding="utf-8")) == {"scenarios": {"a": {"name": "A"}}}
    assert target.read_text(encoding="utf-8").startswith("{\n  ")


def test_sink_from_target_picks_transport(tmp_path: Path) -> None:
    assert isinstance(sink_from_target("https://example.com/scenarios.json"), HttpScenarioSink)
    file_sink = sink_from_target(str(tmp_path / "scenarios.json"))
    assert isinstance(file_sink, FileScenarioSink)
    assert file_sink.path == tmp_path / "scenarios.json"


def test_package_bootstrap_reads_bundled_document() -> None:
    document = PackageBootstrap().fetch()

    assert set(document["scenarios"]) == {"bullishBreakout", "bearishReversal"}


def test_http_bootstrap_raises_on_error_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "get", lambda url, timeout=None: _FakeResponse(404))

    with pytest.raises(requests.HTTPError):
        HttpBootstrap(url="http://localhost:8000/scenarios.json").fetch()


def test_http_bootstrap_returns_json_body(monkeypatch: pytest.MonkeyPatch) -> None:
    document = {"scenarios": {}}
    monkeypatch.setattr(requests, "get", lambda url, timeout=None: _FakeResponse(200, document))

    assert HttpBootstrap(url="http://localhost:8000/scenarios.json").fetch() == document


def test_bootstrap_from_source_resolves_each_form(tmp_path: Path) -> None:
    assert bootstrap_from_source("package:scenarios.json") == PackageBootstrap("scenarios.json")
    assert isinstance(bootstrap_from_source("http://localhost/scenarios.json"), HttpBootstrap)
    source = bootstrap_from_source(str(tmp_path / "seed.json"))
    assert source == FileBootstrap(path=tmp_path / "seed.json")
