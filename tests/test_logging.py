"""Tests for console helpers and structured file logging."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from procstats import logging as plog
from procstats.config import Config


def test_helpers_write_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    """Console helpers keep stdout free for reports."""
    plog.config_invalid("max_items must be >= 1")
    plog.stats_loaded(25 * 60 * 60 * 1000, 1, 12)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Invalid config: max_items must be >= 1" in captured.err
    assert "12 processes over 1d 1h" in captured.err
    assert "1 historical file merged" in captured.err


def test_configure_writes_json_lines(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Events land in the log file as JSON with level, timestamp and source."""
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config()
    plog.configure(config, source="test")

    structlog.get_logger().warning("snapshot_read_error", index=2, error="corrupt")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = config.log_path.read_text().splitlines()
    event = json.loads(lines[-1])
    assert event["event"] == "snapshot_read_error"
    assert event["index"] == 2
    assert event["level"] == "warning"
    assert event["source"] == "test"
    assert "ts" in event


def test_configure_filters_debug(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config()
    plog.configure(config)

    structlog.get_logger().debug("entries_computed", count=3)
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "entries_computed" not in config.log_path.read_text()
