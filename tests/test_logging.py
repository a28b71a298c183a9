from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from ragjobs.core.logging import configure_logging


@pytest.fixture
def restore_root_logger():  # type: ignore[no-untyped-def]
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_logs_carry_process_context(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    restore_root_logger: None,
) -> None:
    configure_logging("debug", json_logs=True)

    logging.getLogger("ragjobs.test").info(
        "Process started",
        extra={"process_id": "p-1", "process_type": "review_article", "action": "GENERATE_REVIEW_ARTICLE"},
    )

    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["msg"] == "Process started"
    assert payload["level"] == "INFO"
    assert payload["process_id"] == "p-1"
    assert payload["action"] == "GENERATE_REVIEW_ARTICLE"
    assert logging.getLogger().level == logging.DEBUG


def test_file_handler_writes_plain_text(tmp_path: Path, restore_root_logger: None) -> None:
    log_file = tmp_path / "logs" / "ragjobs.log"
    configure_logging("INFO", log_file=log_file)

    logging.getLogger("ragjobs.test").warning("Remote call failed for process %s", "p-9")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "WARNING" in content
    assert "Remote call failed for process p-9" in content
