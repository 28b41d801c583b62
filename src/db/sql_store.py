"""Implementation of RemoteStore (and KeyValueCache) using SQLAlchemy"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from copy import deepcopy
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError, StoreUnavailableError
from src.db.repository import Record, RecordCallback, Unsubscribe
from src.db.schema import DBCacheItem, DBRecord

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(db: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise database failures as repository errors."""
    try:
        yield
    except OperationalError as e:
        db.rollback()
        raise StoreUnavailableError(f"Database unavailable while trying to {action}") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise RepositoryError(f"Database error while trying to {action}") from e


class SQLRemoteStore:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        # a Session is not thread safe: every operation holds the lock
        self._lock = threading.RLock()
        self._subscribers: dict[str, list[RecordCallback]] = {}

    def read(self, key: str) -> Record | None:
        """Get record by key, if it exists."""
        with self._lock, _translate_errors(self.db, f"read {key}"):
            record_db = self._fetch_record(key)
            if record_db:
                return self._to_record(record_db)
            return None

    def write(self, key: str, value: Record) -> None:
        with self._lock, _translate_errors(self.db, f"write {key}"):
            record_db = self._fetch_record(key)
            if record_db:
                record_db.value = deepcopy(value)
            else:
                self.db.add(DBRecord(key=key, value=deepcopy(value)))
            self.db.commit()
        self._notify(key, value)

    def update(self, key: str, changes: Record) -> Record:
        with self._lock, _translate_errors(self.db, f"update {key}"):
            record_db = self._fetch_record(key)
            if record_db:
                # assign a new dict so the JSON column registers the change
                merged = {**record_db.value, **deepcopy(changes)}
                record_db.value = merged
            else:
                merged = deepcopy(changes)
                self.db.add(DBRecord(key=key, value=merged))
            self.db.commit()
            result = deepcopy(merged)
        self._notify(key, result)
        return result

    def delete(self, key: str) -> Record | None:
        """Remove a record."""
        with self._lock, _translate_errors(self.db, f"delete {key}"):
            record_db = self._fetch_record(key)
            if not record_db:
                return None
            record = self._to_record(record_db)
            self.db.delete(record_db)
            self.db.commit()
        self._notify(key, None)
        return record

    def list(self, prefix: str) -> dict[str, Record]:
        with self._lock, _translate_errors(self.db, f"list {prefix}"):
            query = select(DBRecord).where(DBRecord.key.startswith(prefix, autoescape=True))
            return {record_db.key: self._to_record(record_db) for record_db in self.db.scalars(query)}

    def subscribe(self, key: str, callback: RecordCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _fetch_record(self, key: str) -> DBRecord | None:
        query = select(DBRecord).where(DBRecord.key == key)
        return self.db.scalar(query)

    def _to_record(self, record_db: DBRecord) -> Record:
        """Detach the stored JSON from the ORM object."""
        return deepcopy(record_db.value)

    def _notify(self, key: str, value: Optional[Record]) -> None:
        """Subscribers are called after the commit, outside the lock."""
        with self._lock:
            callbacks = list(self._subscribers.get(key, []))
        for callback in callbacks:
            try:
                callback(deepcopy(value))
            except Exception:
                logger.exception("Subscriber of %s failed", key)


class SQLKeyValueCache:
    """Local cache persisted in its own table"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            item = self.db.scalar(select(DBCacheItem).where(DBCacheItem.key == key))
            return item.value if item else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock, _translate_errors(self.db, f"cache {key}"):
            item = self.db.scalar(select(DBCacheItem).where(DBCacheItem.key == key))
            if item:
                item.value = value
            else:
                self.db.add(DBCacheItem(key=key, value=value))
            self.db.commit()

    def remove_item(self, key: str) -> None:
        with self._lock, _translate_errors(self.db, f"remove cached {key}"):
            self.db.execute(delete(DBCacheItem).where(DBCacheItem.key == key))
            self.db.commit()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self.db.scalars(select(DBCacheItem.key).order_by(DBCacheItem.key)))

    def clear(self) -> None:
        with self._lock, _translate_errors(self.db, "clear the cache"):
            self.db.execute(delete(DBCacheItem))
            self.db.commit()
