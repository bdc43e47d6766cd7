"""
Local Persistence

Client-local key-value storage for values that must survive a reload:
the advisory "already voted" set and opted-in reminders.

Values are JSON-serializable. Backends:
- MemoryKeyValueStore: process lifetime only (tests, server-side use)
- JsonFileKeyValueStore: one JSON document on disk, rewritten atomically
"""

from __future__ import annotations
import copy
import json
import logging
import os
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class KeyValueStore:
    """get/set/remove port."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        # Same contract as the file store: only JSON values survive
        self._data[key] = json.loads(json.dumps(value))

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Whole-file JSON store.

    A corrupt or unreadable file is treated as empty and logged; local
    state is advisory and must never block the dashboard.
    """

    def __init__(self, path: str):
        self._path = path
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        self._data = self._load()

    @property
    def path(self) -> str:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value))
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable local store %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)


__all__ = ['KeyValueStore', 'MemoryKeyValueStore', 'JsonFileKeyValueStore']
