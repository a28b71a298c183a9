from ragjobs.jobs.events import (
    ProcessCancelled,
    ProcessCompleted,
    ProcessEvent,
    ProcessFailed,
    ProcessRecovered,
    ProcessStarted,
    ProcessStatusUpdated,
    ProcessTerminated,
)
from ragjobs.jobs.service import (
    ALLOWED_TRANSITIONS,
    InvalidProcessStateError,
    ProcessNotFoundError,
    ProcessSupervisor,
    build_supervisor,
    snapshot_to_dict,
)
from ragjobs.jobs.types import ProcessCallbacks, ProcessOutcome, ProcessSnapshot

__all__ = [
    "ALLOWED_TRANSITIONS",
    "InvalidProcessStateError",
    "ProcessCallbacks",
    "ProcessCancelled",
    "ProcessCompleted",
    "ProcessEvent",
    "ProcessFailed",
    "ProcessNotFoundError",
    "ProcessOutcome",
    "ProcessRecovered",
    "ProcessSnapshot",
    "ProcessStarted",
    "ProcessStatusUpdated",
    "ProcessSupervisor",
    "ProcessTerminated",
    "build_supervisor",
    "snapshot_to_dict",
]
