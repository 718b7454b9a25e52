import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

BY_RECIPE = "byRecipe"
CURRENT_CHAT_ID = "currentChatId"


class KeyValueStore(ABC):
    """String store with typed accessors; values are kept as JSON text."""

    @abstractmethod
    def get_raw(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_raw(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def _load(self, key: str):
        raw = self.get_raw(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._load(key)
        return value if isinstance(value, bool) else default

    def set_bool(self, key: str, value: bool) -> None:
        self.set_raw(key, json.dumps(bool(value)))

    def get_str(self, key: str) -> Optional[str]:
        value = self._load(key)
        return value if isinstance(value, str) else None

    def set_str(self, key: str, value: Optional[str]) -> None:
        self.set_raw(key, json.dumps(value))


class MemoryStore(KeyValueStore):
    """Session scoped store, gone with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_raw(self, key):
        return self._data.get(key)

    def set_raw(self, key, value):
        self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Persistent store backed by one JSON object on disk."""

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get_raw(self, key):
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_raw(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
