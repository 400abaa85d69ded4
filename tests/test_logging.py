"""Tests for structured daemon logging."""

import json
import logging
from pathlib import Path
from typing import Iterator

import pytest

from ipfsd_ctl.models import DaemonSystemEvent
from ipfsd_ctl.utils.logging.iso_formatter import ISO8601Formatter
from ipfsd_ctl.utils.logging.log_config import (
    ConsoleFormatter,
    configure_file_logging,
    get_daemon_logger,
    log_event,
    reset_logging,
)


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    yield
    reset_logging()


def _record(msg: object, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("ipfsd-ctl.daemon", level, __file__, 1, msg, None, None)


class TestFormatters:
    def test_iso_formatter_puts_time_and_level_first(self):
        # Act
        line = ISO8601Formatter().format(_record({"event": "daemon_started", "message": "hi"}))
        entry = json.loads(line)

        # Assert
        assert list(entry)[:2] == ["time", "level"]
        assert entry["time"].endswith("Z")
        assert entry["event"] == "daemon_started"

    def test_iso_formatter_wraps_plain_messages(self):
        entry = json.loads(ISO8601Formatter().format(_record("plain text")))
        assert entry["message"] == "plain text"

    def test_console_formatter_uses_message_field(self):
        output = ConsoleFormatter().format(_record({"event": "x", "message": "Started daemon"}))
        assert output == "INFO: Started daemon"

    def test_console_formatter_falls_back_to_event(self):
        output = ConsoleFormatter().format(_record({"event": "repo_removed"}, logging.WARNING))
        assert output == "WARNING: repo_removed"


class TestFileLogging:
    def test_events_written_as_jsonl(self, tmp_path: Path):
        # Arrange
        log_path = tmp_path / "logs" / "system.jsonl"
        assert configure_file_logging(log_path)

        # Act
        log_event(
            logging.INFO,
            DaemonSystemEvent(event="daemon_started", message="Started", backend="native", pid=42),
        )

        # Assert
        entry = json.loads(log_path.read_text().splitlines()[-1])
        assert entry["event"] == "daemon_started"
        assert entry["pid"] == 42
        assert "repo_path" not in entry

    def test_debug_events_filtered_at_info(self, tmp_path: Path):
        # Arrange
        log_path = tmp_path / "system.jsonl"
        configure_file_logging(log_path, "INFO")

        # Act
        log_event(logging.DEBUG, DaemonSystemEvent(event="daemon_output", message="line"))

        # Assert
        assert log_path.read_text() == ""

    def test_debug_level_includes_output_lines(self, tmp_path: Path):
        # Arrange
        log_path = tmp_path / "system.jsonl"
        configure_file_logging(log_path, "DEBUG")

        # Act
        log_event(logging.DEBUG, DaemonSystemEvent(event="daemon_output", message="line"))

        # Assert
        assert json.loads(log_path.read_text())["event"] == "daemon_output"

    def test_reconfigure_replaces_file_handler(self, tmp_path: Path):
        # Act
        configure_file_logging(tmp_path / "a.jsonl")
        configure_file_logging(tmp_path / "b.jsonl")

        # Assert
        file_handlers = [h for h in get_daemon_logger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

    def test_unwritable_location_returns_false(self, tmp_path: Path):
        # Arrange
        blocker = tmp_path / "file"
        blocker.write_text("x")

        # Act & Assert
        assert configure_file_logging(blocker / "system.jsonl") is False

    def test_logger_does_not_propagate(self):
        assert get_daemon_logger().propagate is False
