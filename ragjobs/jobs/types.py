from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ragjobs.db.models import ProcessStatus, ProcessType


@dataclass(slots=True)
class ProcessSnapshot:
    id: str
    type: ProcessType
    status: ProcessStatus
    action: str
    payload: dict[str, Any]
    message: str | None
    result: Any
    error: str | None
    timestamp: datetime | None
    last_updated: datetime | None
    completed_at: datetime | None


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    process_id: str
    status: ProcessStatus
    result: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class ProcessCallbacks:
    on_status_update: Callable[[ProcessStatus, str | None], None] | None = None
    on_complete: Callable[[Any], None] | None = None
    on_error: Callable[[str], None] | None = None
