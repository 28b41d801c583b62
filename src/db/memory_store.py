"""Implementation of RemoteStore kept in process memory"""

import logging
import threading
from copy import deepcopy
from typing import Optional

from src.db.repository import Record, RecordCallback, Unsubscribe

logger = logging.getLogger(__name__)


class InMemoryRemoteStore:
    """
    Records live in a dict. Every value is deep copied on the way in and on the way out, so a caller can never
    mutate stored state without writing it back.
    """

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}
        self._subscribers: dict[str, list[RecordCallback]] = {}
        self._lock = threading.RLock()

    def read(self, key: str) -> Record | None:
        with self._lock:
            record = self._records.get(key)
            return deepcopy(record) if record is not None else None

    def write(self, key: str, value: Record) -> None:
        with self._lock:
            self._records[key] = deepcopy(value)
        self._notify(key, value)

    def update(self, key: str, changes: Record) -> Record:
        with self._lock:
            merged = {**self._records.get(key, {}), **deepcopy(changes)}
            self._records[key] = merged
            result = deepcopy(merged)
        self._notify(key, result)
        return result

    def delete(self, key: str) -> Record | None:
        with self._lock:
            removed = self._records.pop(key, None)
        if removed is not None:
            self._notify(key, None)
        return removed

    def list(self, prefix: str) -> dict[str, Record]:
        with self._lock:
            return {key: deepcopy(value) for key, value in self._records.items() if key.startswith(prefix)}

    def subscribe(self, key: str, callback: RecordCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify(self, key: str, value: Optional[Record]) -> None:
        """Subscribers run outside the store lock, each with its own copy."""
        with self._lock:
            callbacks = list(self._subscribers.get(key, []))
        for callback in callbacks:
            try:
                callback(deepcopy(value))
            except Exception:
                logger.exception("Subscriber of %s failed", key)
