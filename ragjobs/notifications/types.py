from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    id: str
    severity: Severity
    message: str
    process_id: str | None
    created_at: datetime


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "severity": notification.severity.value,
        "message": notification.message,
        "process_id": notification.process_id,
        "created_at": notification.created_at,
    }
