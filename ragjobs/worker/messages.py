"""Messages exchanged between the supervisor and execution workers.

The supervisor sends a single ``StartMessage`` and, optionally, a
``TerminateMessage``. A worker answers with one ``StatusUpdate`` followed by
exactly one ``ResultMessage`` or ``ErrorMessage``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ragjobs.db.models import ProcessStatus

TERMINATE_ACTION = "TERMINATE"


class MessageType(str, Enum):
    STATUS_UPDATE = "STATUS_UPDATE"
    RESULT = "RESULT"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class StartMessage:
    action: str
    payload: dict[str, Any]
    process_id: str


@dataclass(frozen=True, slots=True)
class TerminateMessage:
    action: str = field(default=TERMINATE_ACTION, init=False)


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    process_id: str
    status: ProcessStatus = ProcessStatus.RUNNING
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ResultMessage:
    process_id: str
    result: Any = None


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    process_id: str
    error: str


SupervisorMessage = StartMessage | TerminateMessage
WorkerMessage = StatusUpdate | ResultMessage | ErrorMessage


def pack_message(message: SupervisorMessage | WorkerMessage) -> dict[str, Any]:
    """Convert a message to its JSON-compatible wire form."""
    if isinstance(message, StartMessage):
        return {"action": message.action, "payload": message.payload, "process_id": message.process_id}
    if isinstance(message, TerminateMessage):
        return {"action": TERMINATE_ACTION}
    if isinstance(message, StatusUpdate):
        return {
            "type": MessageType.STATUS_UPDATE.value,
            "process_id": message.process_id,
            "status": message.status.value,
            "message": message.message,
        }
    if isinstance(message, ResultMessage):
        return {
            "type": MessageType.RESULT.value,
            "process_id": message.process_id,
            "status": ProcessStatus.COMPLETED.value,
            "result": message.result,
        }
    if isinstance(message, ErrorMessage):
        return {
            "type": MessageType.ERROR.value,
            "process_id": message.process_id,
            "status": ProcessStatus.ERROR.value,
            "error": message.error,
        }
    raise TypeError(f"Unsupported message: {message!r}")


def unpack_message(raw: Any) -> WorkerMessage:
    """Parse a worker message from its wire form, raising ``ValueError`` when malformed."""
    if not isinstance(raw, dict):
        raise ValueError(f"Malformed worker message: {raw!r}")
    process_id = raw.get("process_id")
    if not isinstance(process_id, str) or not process_id:
        raise ValueError(f"Worker message without process_id: {raw!r}")
    try:
        kind = MessageType(raw.get("type"))
    except ValueError as exc:
        raise ValueError(f"Unknown worker message type: {raw.get('type')!r}") from exc

    if kind == MessageType.STATUS_UPDATE:
        try:
            status = ProcessStatus(raw.get("status") or ProcessStatus.RUNNING)
        except ValueError as exc:
            raise ValueError(f"Malformed status update: {raw!r}") from exc
        message = raw.get("message")
        return StatusUpdate(process_id=process_id, status=status, message=None if message is None else str(message))
    if kind == MessageType.RESULT:
        return ResultMessage(process_id=process_id, result=raw.get("result"))
    error = raw.get("error")
    if error is None:
        raise ValueError(f"Error message without error description: {raw!r}")
    return ErrorMessage(process_id=process_id, error=str(error))


def unpack_command(raw: Any) -> SupervisorMessage:
    if not isinstance(raw, dict) or not isinstance(raw.get("action"), str):
        raise ValueError(f"Malformed supervisor message: {raw!r}")
    if raw["action"] == TERMINATE_ACTION:
        return TerminateMessage()
    payload = raw.get("payload") or {}
    process_id = raw.get("process_id")
    if not isinstance(payload, dict) or not isinstance(process_id, str) or not process_id:
        raise ValueError(f"Malformed start message: {raw!r}")
    return StartMessage(action=raw["action"], payload=payload, process_id=process_id)
