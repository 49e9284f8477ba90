"""Durable key-value storage and the installed plugin table stored on top of it."""

import json
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from mdnotes.exceptions import PersistenceError
from mdnotes.logger import get_logger
from mdnotes.plugins.models import InstalledPlugin

logger = get_logger(__name__)

INSTALLED_PLUGINS_KEY = "installed_plugins"

_records_adapter = TypeAdapter(list[InstalledPlugin])


class KeyValueStore(ABC):
    """String-to-string store shared by every plugin and by the manager."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        pass


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Keeps all items in a single JSON object on disk. Every write rewrites the
    file through a temporary sibling so a crash never leaves it half written.

    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Unable to read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not contain a JSON object")
        return {
            str(key): value if isinstance(value, str) else json.dumps(value)
            for key, value in data.items()
        }

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Unable to write {self.path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write()

    def keys(self) -> list[str]:
        return list(self._data)


class PersistenceAdapter(ABC):
    """Durable home of the installed plugin table."""

    @abstractmethod
    def load_all(self) -> list[InstalledPlugin]:
        pass

    @abstractmethod
    def save_all(self, records: list[InstalledPlugin]) -> None:
        pass


class KeyValuePersistence(PersistenceAdapter):
    """Stores the installed plugin table as a JSON list under one key."""

    def __init__(self, store: KeyValueStore, key: str = INSTALLED_PLUGINS_KEY) -> None:
        self.store = store
        self.key = key

    def load_all(self) -> list[InstalledPlugin]:
        raw = self.store.get_item(self.key)
        if raw is None:
            return []
        try:
            return _records_adapter.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Installed plugin table is corrupt: {e}") from e

    def save_all(self, records: list[InstalledPlugin]) -> None:
        self.store.set_item(self.key, _records_adapter.dump_json(records).decode("utf-8"))
