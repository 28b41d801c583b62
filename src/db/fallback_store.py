"""
RemoteStore that keeps working offline.

Every successful write is mirrored into local storage. When the remote store is unavailable, reads are served from
that mirror. Writes still require the remote store: their failure propagates.
"""

import logging

from src.core.exceptions import StoreUnavailableError
from src.db.local_cache import LocalStorage
from src.db.repository import Record, RecordCallback, RemoteStore, Unsubscribe

logger = logging.getLogger(__name__)

MIRROR_PREFIX = "remote:"


class FallbackRemoteStore:
    def __init__(self, remote: RemoteStore, storage: LocalStorage) -> None:
        self.remote = remote
        self.storage = storage

    def read(self, key: str) -> Record | None:
        try:
            record = self.remote.read(key)
        except StoreUnavailableError:
            logger.warning("Remote store unavailable, reading %s from local storage", key)
            return self.storage.get(self._mirror_key(key))
        self._mirror(key, record)
        return record

    def write(self, key: str, value: Record) -> None:
        self.remote.write(key, value)
        self._mirror(key, value)

    def update(self, key: str, changes: Record) -> Record:
        merged = self.remote.update(key, changes)
        self._mirror(key, merged)
        return merged

    def delete(self, key: str) -> Record | None:
        removed = self.remote.delete(key)
        self.storage.remove(self._mirror_key(key))
        return removed

    def list(self, prefix: str) -> dict[str, Record]:
        try:
            return self.remote.list(prefix)
        except StoreUnavailableError:
            logger.warning("Remote store unavailable, listing %s from local storage", prefix)
            mirrored = self.storage.keys(self._mirror_key(prefix))
            return {key.removeprefix(MIRROR_PREFIX): self.storage.get(key) for key in mirrored}

    def subscribe(self, key: str, callback: RecordCallback) -> Unsubscribe:
        return self.remote.subscribe(key, callback)

    def _mirror(self, key: str, record: Record | None) -> None:
        if record is None:
            self.storage.remove(self._mirror_key(key))
        else:
            self.storage.set(self._mirror_key(key), record)

    @staticmethod
    def _mirror_key(key: str) -> str:
        return f"{MIRROR_PREFIX}{key}"
