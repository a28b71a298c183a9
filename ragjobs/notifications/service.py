from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from uuid import uuid4

from ragjobs.notifications.scheduler import Scheduler, TimerScheduler
from ragjobs.notifications.types import Notification, Severity

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Ephemeral list of lifecycle notifications.

    Each entry is removed ``ttl_seconds`` after it was added, whether or not
    anyone looked at it. Nothing here refers back to persisted process state.
    """

    def __init__(self, *, ttl_seconds: float = 10.0, scheduler: Scheduler | None = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl_seconds = ttl_seconds
        self._scheduler = scheduler or TimerScheduler()
        self._lock = threading.Lock()
        self._entries: list[Notification] = []

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def add(self, severity: Severity | str, message: str, *, process_id: str | None = None) -> Notification:
        notification = Notification(
            id=str(uuid4()),
            severity=Severity(severity),
            message=message,
            process_id=process_id,
            created_at=datetime.now(tz=timezone.utc),
        )
        with self._lock:
            self._entries.append(notification)
        self._scheduler.call_later(self._ttl_seconds, lambda: self._expire(notification.id))
        logger.debug(
            "Notification added",
            extra={"notification_id": notification.id, "process_id": process_id, "status": notification.severity.value},
        )
        return notification

    def entries(self) -> list[Notification]:
        with self._lock:
            return list(self._entries)

    def remove(self, notification_id: str) -> bool:
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.id == notification_id:
                    del self._entries[index]
                    return True
        return False

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def count(self, severity: Severity | str | None = None) -> int:
        with self._lock:
            if severity is None:
                return len(self._entries)
            wanted = Severity(severity)
            return sum(1 for entry in self._entries if entry.severity == wanted)

    def close(self) -> None:
        self._scheduler.cancel_all()

    def _expire(self, notification_id: str) -> None:
        if self.remove(notification_id):
            logger.debug("Notification expired", extra={"notification_id": notification_id})
