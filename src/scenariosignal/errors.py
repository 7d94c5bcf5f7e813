from __future__ import annotations


class ScenarioError(Exception):
    """Base class for scenariosignal errors."""


class ScenarioFormatError(ScenarioError, ValueError):
    """Raised when a scenario document does not have the expected shape."""

    def __init__(self, message: str, path: str = "$") -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.detail = message


class ScenarioNotFoundError(ScenarioError, KeyError):
    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class StorageError(ScenarioError):
    """Raised when a storage backend cannot complete a read or write."""


class SinkError(StorageError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ScenarioError",
    "ScenarioFormatError",
    "ScenarioNotFoundError",
    "StorageError",
    "SinkError",
]
