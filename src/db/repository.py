"""Protocol repositories (implemented in memory and with SQLAlchemy, a hosted document store can implement them later)"""

from typing import Any, Callable, Optional, Protocol

Record = dict[str, Any]
RecordCallback = Callable[[Optional[Record]], None]
Unsubscribe = Callable[[], None]


class RemoteStore(Protocol):
    """
    Shared, remote document store.

    Records are JSON-safe dicts stored under slash separated keys (ex. "rooms/AB12CD", "users/<user_id>").
    Unavailability is reported with StoreUnavailableError, any other failure with RepositoryError.
    """

    def read(self, key: str) -> Record | None:
        """Get the record stored under key, if it exists."""
        ...

    def write(self, key: str, value: Record) -> None:
        """Store (or replace) the record under key."""
        ...

    def update(self, key: str, changes: Record) -> Record:
        """Merge changes into the top level fields of a record (creating it if needed). Returns the merged record."""
        ...

    def delete(self, key: str) -> Record | None:
        """Remove a record. Returns what was removed."""
        ...

    def list(self, prefix: str) -> dict[str, Record]:
        """All records whose key starts with prefix."""
        ...

    def subscribe(self, key: str, callback: RecordCallback) -> Unsubscribe:
        """Call back with the new value (None when deleted) every time the record changes."""
        ...


class KeyValueCache(Protocol):
    """Device local string key-value storage"""

    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
    def keys(self) -> list[str]: ...
    def clear(self) -> None: ...
