from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from scenariosignal.errors import StorageError


class KeyValueStore(Protocol):
    """Primary tier: whole JSON records addressed by a string key."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


def _join_prefix(prefix: str, path: str) -> str:
    clean = path.strip().lstrip("/")
    if not prefix:
        return clean
    if not clean:
        return prefix
    return f"{prefix}/{clean}"


def _encode(value: Any) -> bytes:
    return json.dumps(value, indent=2).encode("utf-8")


def _decode(key: str, data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StorageError(f"Record '{key}' is not valid JSON.") from exc


@dataclass
class LocalKeyValueStore:
    root_dir: Path

    def _full_path(self, key: str) -> Path:
        return self.root_dir / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._full_path(key)
        if not path.exists():
            return None
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Unable to read record '{key}' from {path}.") from exc
        return _decode(key, data)

    def set(self, key: str, value: Any) -> None:
        target = self._full_path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{key}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(_encode(value))
            os.replace(tmp_name, target)
        except OSError as exc:
            raise StorageError(f"Unable to write record '{key}' to {target}.") from exc


@dataclass
class GCSKeyValueStore:
    bucket_name: str
    prefix: str

    def _client(self):
        try:
            from google.cloud import storage  # type: ignore
        except Exception as exc:
            raise StorageError("google-cloud-storage is required for GCS storage.") from exc
        return storage.Client()

    def _blob(self, key: str):
        return self._client().bucket(self.bucket_name).blob(
            _join_prefix(self.prefix, f"{key}.json")
        )

    def get(self, key: str) -> Any | None:
        blob = self._blob(key)
        try:
            if not blob.exists():
                return None
            data = blob.download_as_bytes()
        except Exception as exc:
            raise StorageError(f"Unable to read record '{key}' from GCS.") from exc
        return _decode(key, data)

    def set(self, key: str, value: Any) -> None:
        blob = self._blob(key)
        try:
            blob.upload_from_string(_encode(value), content_type="application/json")
        except Exception as exc:
            raise StorageError(f"Unable to write record '{key}' to GCS.") from exc


@dataclass
class PostgresKeyValueStore:
    database_url: str
    table: str = "scenariosignal_records"

    def _driver(self):
        try:
            import psycopg  # type: ignore
        except Exception as exc:
            raise StorageError("psycopg is required for Postgres storage.") from exc
        return psycopg

    def _connect(self, psycopg):
        try:
            return psycopg.connect(self.database_url)
        except psycopg.Error as exc:
            raise StorageError("Unable to connect to Postgres.") from exc

    def _init(self, conn) -> None:
        # json keeps object key order, jsonb does not.
        with conn.cursor() as cur:
            cur.execute(
                f"""
                create table if not exists {self.table} (
                    key text primary key,
                    value json,
                    updated_at timestamptz default now()
                );
                """
            )
        conn.commit()

    def get(self, key: str) -> Any | None:
        psycopg = self._driver()
        conn = self._connect(psycopg)
        try:
            self._init(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"select value from {self.table} where key = %s limit 1;",
                    (key,),
                )
                row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Unable to read record '{key}' from Postgres.") from exc
        finally:
            conn.close()
        if not row:
            return None
        return row[0]

    def set(self, key: str, value: Any) -> None:
        psycopg = self._driver()
        from psycopg.types.json import Json  # type: ignore

        conn = self._connect(psycopg)
        try:
            self._init(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into {self.table} (key, value, updated_at)
                    values (%s, %s, now())
                    on conflict (key) do update set
                        value = excluded.value,
                        updated_at = excluded.updated_at;
                    """,
                    (key, Json(value)),
                )
            conn.commit()
        except psycopg.Error as exc:
            raise StorageError(f"Unable to write record '{key}' to Postgres.") from exc
        finally:
            conn.close()


__all__ = [
    "KeyValueStore",
    "LocalKeyValueStore",
    "GCSKeyValueStore",
    "PostgresKeyValueStore",
]
