"""
Notifications to users (local and scheduled).

Notifier failures never fail the operation that triggered them: services talk to a SafeNotifier, which logs and
swallows errors of the wrapped notifier.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_local(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None: ...

    def schedule(
        self, title: str, body: str, trigger: datetime, data: Optional[dict[str, Any]] = None
    ) -> str:
        """Deliver at trigger time. Returns an id to cancel it with."""
        ...

    def cancel(self, notification_id: str) -> None: ...


@dataclass
class Notification:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    trigger: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid4()))


class InMemoryNotifier:
    """Keeps every notification, so they can be inspected (tests, dev server)."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self.scheduled: dict[str, Notification] = {}
        self._lock = threading.Lock()

    def send_local(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        with self._lock:
            self.sent.append(Notification(title, body, data or {}))

    def schedule(
        self, title: str, body: str, trigger: datetime, data: Optional[dict[str, Any]] = None
    ) -> str:
        notification = Notification(title, body, data or {}, trigger)
        with self._lock:
            self.scheduled[notification.id] = notification
        return notification.id

    def cancel(self, notification_id: str) -> None:
        with self._lock:
            self.scheduled.pop(notification_id, None)

    def sent_to(self, user_id: str) -> list[Notification]:
        return [n for n in self.sent if n.data.get("user_id") == user_id]


class SafeNotifier:
    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def send_local(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        try:
            self.notifier.send_local(title, body, data)
        except Exception:
            logger.warning("Failed to send notification %r", title, exc_info=True)

    def schedule(
        self, title: str, body: str, trigger: datetime, data: Optional[dict[str, Any]] = None
    ) -> Optional[str]:
        try:
            return self.notifier.schedule(title, body, trigger, data)
        except Exception:
            logger.warning("Failed to schedule notification %r", title, exc_info=True)
            return None

    def cancel(self, notification_id: str) -> None:
        try:
            self.notifier.cancel(notification_id)
        except Exception:
            logger.warning("Failed to cancel notification %s", notification_id, exc_info=True)
