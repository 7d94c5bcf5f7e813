from pathlib import Path

import pytest

from scenariosignal.app.config import (
    Settings,
    apply_overrides,
    build_store,
    load_settings,
    primary_store_from_settings,
)
from scenariosignal.storage.bootstrap import FileBootstrap, PackageBootstrap
from scenariosignal.storage.kv_store import (
    GCSKeyValueStore,
    LocalKeyValueStore,
    PostgresKeyValueStore,
)
from scenariosignal.storage.sink import FileScenarioSink, HttpScenarioSink


def test_defaults_without_config_file(tmp_path: Path) -> None:
    settings = load_settings(config_path=tmp_path / "missing.yaml", environ={})

    assert settings == Settings()
    assert settings.markets == ("gold", "oil", "dj")
    assert settings.bootstrap_source == "package:scenarios.json"


def test_layers_apply_file_then_env_then_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "scenariosignal.yaml"
    config_path.write_text(
        "\n".join(
            [
                "# local settings",
                "primary_store: none",
                "log_level: debug",
                "markets: gold, silver",
                "sink_max_retries: 5",
                "log_json: false",
            ]
        ),
        encoding="utf-8",
    )
    environ = {
        "SCENARIOSIGNAL_PRIMARY_STORE": "postgres",
        "DATABASE_URL": "postgresql://localhost/scenarios",
        "UNRELATED": "ignored",
    }

    settings = load_settings({"request_timeout": "2.5"}, config_path=config_path, environ=environ)

    assert settings.primary_store == "postgres"
    assert settings.database_url == "postgresql://localhost/scenarios"
    assert settings.log_level == "DEBUG"
    assert settings.markets == ("gold", "silver")
    assert settings.sink_max_retries == 5
    assert settings.log_json is False
    assert settings.request_timeout == 2.5


def test_unknown_and_invalid_values_are_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown settings keys"):
        apply_overrides(Settings(), {"colour": "blue"})
    with pytest.raises(ValueError, match="primary_store"):
        apply_overrides(Settings(), {"primary_store": "redis"})
    with pytest.raises(ValueError, match="sink_max_retries"):
        apply_overrides(Settings(), {"sink_max_retries": "many"})
    with pytest.raises(ValueError, match="markets"):
        apply_overrides(Settings(), {"markets": " , "})


def test_blank_optional_text_becomes_none() -> None:
    settings = apply_overrides(Settings(sink_url="http://x"), {"sink_url": "  "})

    assert settings.sink_url is None


def test_primary_store_selection(tmp_path: Path) -> None:
    local = primary_store_from_settings(Settings(data_dir=str(tmp_path)))
    assert local == LocalKeyValueStore(root_dir=tmp_path)

    gcs = primary_store_from_settings(
        Settings(primary_store="gcs", gcs_bucket="bucket", gcs_prefix="/scenariosignal/")
    )
    assert gcs == GCSKeyValueStore(bucket_name="bucket", prefix="scenariosignal")

    postgres = primary_store_from_settings(
        Settings(primary_store="postgres", database_url="postgresql://localhost/db")
    )
    assert isinstance(postgres, PostgresKeyValueStore)

    assert primary_store_from_settings(Settings(primary_store="none")) is None


def test_remote_primary_requires_its_settings() -> None:
    with pytest.raises(ValueError, match="gcs_bucket"):
        primary_store_from_settings(Settings(primary_store="gcs"))
    with pytest.raises(ValueError, match="database_url"):
        primary_store_from_settings(Settings(primary_store="postgres"))


def test_build_store_wires_tiers(tmp_path: Path) -> None:
    store = build_store(
        Settings(
            data_dir=str(tmp_path),
            sink_url="http://localhost:8000/scenarios.json",
            sink_max_retries=0,
        )
    )

    assert store.has_primary
    assert store.bootstrap == PackageBootstrap("scenarios.json")
    assert isinstance(store.sink, HttpScenarioSink)
    assert store.sink.max_retries == 0


def test_build_store_without_primary_uses_file_sink(tmp_path: Path) -> None:
    store = build_store(
        Settings(
            primary_store="none",
            bootstrap_source=str(tmp_path / "seed.json"),
            sink_url=str(tmp_path / "out.json"),
        )
    )

    assert not store.has_primary
    assert store.bootstrap == FileBootstrap(path=tmp_path / "seed.json")
    assert store.sink == FileScenarioSink(path=tmp_path / "out.json")
