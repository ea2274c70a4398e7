"""Tests for the structlog/stdlib logging pipeline."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from routegrid.utils.logging import get_logger, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:

    def test_events_reach_log_file_as_json(self, tmp_path, restore_logging):
        path = setup_logging(log_dir=str(tmp_path), log_file="grid.log")
        assert path == str(tmp_path / "grid.log")

        get_logger("tests.logging", component="grid").info("row_created", id="r1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(Path(path).read_text(encoding="utf-8").splitlines()[-1])
        assert record["event"] == "row_created"
        assert record["logger"] == "tests.logging"
        assert record["component"] == "grid"
        assert record["level"] == "info"

    def test_noisy_libraries_quiet_outside_debug(self, tmp_path, restore_logging):
        setup_logging(log_dir=str(tmp_path))
        assert logging.getLogger("httpx").level == logging.WARNING
        setup_logging(debug=True, log_dir=str(tmp_path))
        assert logging.getLogger("httpx").level == logging.DEBUG
