"""
Tests for the pipeline log line helpers and one-time logging setup.
"""

import logging

from libs.core import logging_config
from libs.core.logging_config import log_stage, log_transition, setup_logging

LOGGER_NAME = "apps.services.proof_service.services.orchestrator"


class TestLogLines:
    def test_stage_line_with_elapsed(self, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER_NAME)
        log_stage(logging.getLogger(LOGGER_NAME), "m-1", "prove", "DONE", 1234.4)
        assert caplog.messages == ["[Pipeline] m-1 STAGE prove | DONE | elapsed=1234ms"]

    def test_stage_line_without_elapsed(self, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER_NAME)
        log_stage(logging.getLogger(LOGGER_NAME), "m-1", "verify", "START")
        assert caplog.messages == ["[Pipeline] m-1 STAGE verify | START"]

    def test_transition_line(self, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER_NAME)
        log_transition(logging.getLogger(LOGGER_NAME), "m-1", "Pending", "Processing")
        assert caplog.messages == ["[Pipeline] m-1 STATUS Pending -> Processing"]


class TestSetupLogging:
    def test_later_calls_do_not_touch_handlers(self, tmp_path, monkeypatch):
        # conftest has already configured logging for the session
        assert logging_config._configured
        monkeypatch.setattr(logging_config, "LOG_DIR", tmp_path / "logs")
        before = list(logging.getLogger().handlers)

        setup_logging(level="DEBUG")

        assert logging.getLogger().handlers == before
        assert not (tmp_path / "logs").exists()
