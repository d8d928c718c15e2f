"""Key/value persistence for the instance list and scalar preferences."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from typing import Protocol

import msgspec

logger = logging.getLogger(__name__)

# Well-known keys
CONFIGS_KEY = "providerInstanceConfigs"
POLL_INTERVAL_KEY = "pollInterval"
SORT_MODE_KEY = "sortMode"
SORT_ASCENDING_KEY = "sortAscending"
SHOW_ICON_KEY = "showIconInMenuBar"
SHOW_NAME_KEY = "showNameInMenuBar"


class KeyValueStore(Protocol):
    """Persistence facility holding JSON-compatible values by key."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...

    def contains(self, key: str) -> bool: ...


class MemoryStore:
    """In-process key/value store."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)

    def contains(self, key: str) -> bool:
        return key in self.values


class JsonFileStore(MemoryStore):
    """Key/value store persisted as one JSON object on disk.

    Every write rewrites the file atomically.
    """

    def __init__(self, path: Path | None = None) -> None:
        if path is None:
            from .paths import preferences_file

            path = preferences_file()
        self.path = path
        super().__init__(self._load())

    def _load(self) -> dict[str, Any]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return {}

        try:
            values = msgspec.json.decode(data)
        except msgspec.DecodeError as e:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, e)
            return {}

        if not isinstance(values, dict):
            logger.warning("Ignoring malformed preferences at %s", self.path)
            return {}
        return values

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_bytes(msgspec.json.format(msgspec.json.encode(self.values)))
        temp_path.replace(self.path)

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        super().remove(key)
        self._flush()
