"""Tests for utils/logger.py"""

import json
import logging

import pytest

from utils.logger import ReconciliationLogger


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:

    def test_log_file_directory_is_created(self, root_logger, tmp_path):
        log_file = tmp_path / "logs" / "conflict-check.log"

        ReconciliationLogger.setup_logging("DEBUG", str(log_file))
        logging.getLogger("src.reconciliation.engine").info("🔍 Detection pass")
        for handler in root_logger.handlers:
            handler.flush()

        assert root_logger.level == logging.DEBUG
        assert "🔍 Detection pass" in log_file.read_text(encoding="utf-8")

    def test_unknown_level_falls_back_to_info(self, root_logger):
        ReconciliationLogger.setup_logging("chatty")
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1

    def test_noisy_loggers_are_quieted(self, root_logger):
        ReconciliationLogger.setup_logging("DEBUG")
        for name in ReconciliationLogger.NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


def test_log_api_call_summarizes_payload(caplog):
    with caplog.at_level(logging.INFO, logger="utils.logger"):
        ReconciliationLogger.log_api_call(
            "/calendar-links/group", {"eventIds": ["E1", "E2"], "colorId": "5"},
            {"success": True, "members": ["E1", "E2"]}, 0.01234,
        )

    message = caplog.records[-1].getMessage()
    entry = json.loads(message.split("API call processed: ", 1)[1])
    assert entry["endpoint"] == "/calendar-links/group"
    assert entry["request_summary"] == {"colorId": "5", "eventIds": ["E1", "E2"]}
    assert entry["result_keys"] == ["members", "success"]
    assert entry["processing_time_seconds"] == 0.012
