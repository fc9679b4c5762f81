"""
Key/value storage backends.

Mirrors the browser Web Storage surface (``getItem``/``setItem``/
``removeItem``) so session and provider slots can live in memory for a
single context or on disk when they have to outlive the process.

Example:
    from connect_auth.storage import FileStorage, MemoryStorage

    local_storage = FileStorage("~/.connect_mart/local.json")
    session_storage = MemoryStorage()

    local_storage.set_item("mockUser", '{"uid": "u1"}')
    local_storage.get_item("mockUser")  # '{"uid": "u1"}'
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """
    Abstract string key/value storage.

    Values are opaque strings (callers serialize JSON themselves).
    Writes are last-write-wins; there is no locking.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is not an error."""
        pass

    def __contains__(self, key: str) -> bool:
        return self.get_item(key) is not None


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage. Lives as long as the object does."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(KeyValueStorage):
    """
    Write-through storage persisted to a single JSON file.

    The file is read once on construction; every mutation rewrites it.
    A missing or unreadable file starts empty.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()
        self._items: Dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable storage file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self._path}: expected a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._items, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._flush()
