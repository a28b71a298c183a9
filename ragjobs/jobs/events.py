"""Lifecycle events published by the supervisor on its event bus.

Subscribe to ``ProcessEvent`` to receive every event of every process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ragjobs.db.models import ProcessStatus, ProcessType


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    process_id: str


@dataclass(frozen=True, slots=True)
class ProcessStarted(ProcessEvent):
    process_type: ProcessType
    action: str


@dataclass(frozen=True, slots=True)
class ProcessStatusUpdated(ProcessEvent):
    status: ProcessStatus
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ProcessCompleted(ProcessEvent):
    process_type: ProcessType
    result: Any = None


@dataclass(frozen=True, slots=True)
class ProcessFailed(ProcessEvent):
    process_type: ProcessType
    error: str


@dataclass(frozen=True, slots=True)
class ProcessCancelled(ProcessEvent):
    process_type: ProcessType


@dataclass(frozen=True, slots=True)
class ProcessTerminated(ProcessEvent):
    process_type: ProcessType


@dataclass(frozen=True, slots=True)
class ProcessRecovered(ProcessEvent):
    process_type: ProcessType
    action: str
