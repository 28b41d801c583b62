"""
Device local storage on top of a string key-value cache.

Values are stored JSON encoded. The whole cache can be exported to a single JSON document and imported again
(ex. to move a user's offline data to a new device).
"""

import json
import logging
import threading
from typing import Any, Optional

from src.core.exceptions import InvalidRequestError
from src.db.repository import KeyValueCache

logger = logging.getLogger(__name__)


class InMemoryKeyValueCache:
    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class LocalStorage:
    """JSON values over a KeyValueCache"""

    def __init__(self, cache: KeyValueCache) -> None:
        self.cache = cache

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.cache.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping unreadable cache entry %s", key)
            self.cache.remove_item(key)
            return default

    def set(self, key: str, value: Any) -> None:
        self.cache.set_item(key, json.dumps(value))

    def remove(self, key: str) -> None:
        self.cache.remove_item(key)

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self.cache.keys() if key.startswith(prefix)]

    def clear(self) -> None:
        self.cache.clear()

    def export_data(self) -> str:
        """Every entry as one JSON document: {key: decoded value}."""
        data = {key: self.get(key) for key in self.cache.keys()}
        return json.dumps(data, sort_keys=True)

    def import_data(self, data: str) -> int:
        """Restore the entries of an export. Existing keys are overwritten. Returns the number of imported entries."""
        try:
            entries = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidRequestError("Import data is not valid JSON") from e
        if not isinstance(entries, dict):
            raise InvalidRequestError("Import data must be a JSON object of key/value pairs")

        for key, value in entries.items():
            self.set(key, value)
        logger.info("Imported %d local storage entries", len(entries))
        return len(entries)
