"""Tests for the JSON diagnostic logger."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from logdeck.log_setup import JsonConsoleFormatter, setup_logger


def test_formatter_emits_json_with_context_and_redaction() -> None:
    record = logging.LogRecord(
        name="logdeck.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="queue full token=%s",
        args=("abc123",),
        exc_info=None,
    )
    record.queue_capacity = 10
    record.api_key = "secret-value"

    event = json.loads(JsonConsoleFormatter().format(record))
    assert event["level"] == "WARNING"
    assert event["logger"] == "logdeck.test"
    assert "abc123" not in event["message"]
    assert event["context"]["queue_capacity"] == 10
    assert event["context"]["api_key"] == "[REDACTED]"


def test_setup_logger_writes_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "logdeck.log"
    logger = setup_logger("logdeck.test.file", logging.DEBUG, log_file=log_file)
    logger.info("started", extra={"ui_mode": "live"})
    for handler in logger.handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["message"] == "started"
    assert event["context"] == {"ui_mode": "live"}
    setup_logger("logdeck.test.file")


def test_setup_logger_replaces_handlers(capsys: Any) -> None:
    logger = setup_logger("logdeck.test.stream")
    logger = setup_logger("logdeck.test.stream")
    assert len(logger.handlers) == 1
    assert not logger.propagate
    logger.error("boom")
    assert json.loads(capsys.readouterr().err)["message"] == "boom"
