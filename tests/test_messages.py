from __future__ import annotations

import pytest

from ragjobs.db.models import ProcessStatus
from ragjobs.worker.messages import (
    ErrorMessage,
    ResultMessage,
    StartMessage,
    StatusUpdate,
    TerminateMessage,
    pack_message,
    unpack_command,
    unpack_message,
)


def test_worker_messages_use_wire_field_names() -> None:
    assert pack_message(StatusUpdate(process_id="p-1", message="Starting process: PROCESS_QUERY")) == {
        "type": "STATUS_UPDATE",
        "process_id": "p-1",
        "status": "running",
        "message": "Starting process: PROCESS_QUERY",
    }
    assert pack_message(ResultMessage(process_id="p-1", result={"answer": 42})) == {
        "type": "RESULT",
        "process_id": "p-1",
        "status": "completed",
        "result": {"answer": 42},
    }
    assert pack_message(ErrorMessage(process_id="p-1", error="Error 500: boom"))["status"] == "error"


def test_supervisor_commands_use_wire_field_names() -> None:
    start = StartMessage(action="GENERATE_SUMMARY", payload={"model": "gpt"}, process_id="p-1")
    assert pack_message(start) == {"action": "GENERATE_SUMMARY", "payload": {"model": "gpt"}, "process_id": "p-1"}
    assert pack_message(TerminateMessage()) == {"action": "TERMINATE"}
    assert unpack_command({"action": "TERMINATE"}) == TerminateMessage()
    assert unpack_command(pack_message(start)) == start


def test_unpack_status_update_defaults_to_running() -> None:
    message = unpack_message({"type": "STATUS_UPDATE", "process_id": "p-1"})
    assert message == StatusUpdate(process_id="p-1", status=ProcessStatus.RUNNING, message=None)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "STATUS_UPDATE",
        {"type": "STATUS_UPDATE"},
        {"type": "STATUS_UPDATE", "process_id": ""},
        {"type": "PROGRESS", "process_id": "p-1"},
        {"type": "STATUS_UPDATE", "process_id": "p-1", "status": "sleeping"},
        {"type": "ERROR", "process_id": "p-1"},
    ],
)
def test_unpack_message_rejects_malformed_input(raw: object) -> None:
    with pytest.raises(ValueError):
        unpack_message(raw)


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"payload": {}},
        {"action": "PROCESS_QUERY", "payload": {}},
        {"action": "PROCESS_QUERY", "payload": [], "process_id": "p-1"},
    ],
)
def test_unpack_command_rejects_malformed_input(raw: object) -> None:
    with pytest.raises(ValueError):
        unpack_command(raw)
