"""Tests for timekeeper.logging - structlog configuration and context."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

import timekeeper.logging as tk_logging
from timekeeper.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_configured,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    clear_context()
    yield
    clear_context()
    structlog.reset_defaults()
    tk_logging._configured = False


class TestConfigureLogging:
    def test_configures_once(self):
        assert is_configured() is False
        configure_logging(level="WARNING")
        assert is_configured() is True
        assert logging.getLogger("timekeeper").level == logging.WARNING

        configure_logging(level="DEBUG")
        assert logging.getLogger("timekeeper").level == logging.WARNING

    def test_force_reconfigures(self):
        configure_logging(level="WARNING")
        configure_logging(level="DEBUG", force=True)
        assert logging.getLogger("timekeeper").level == logging.DEBUG

    def test_reads_settings(self, monkeypatch):
        monkeypatch.setenv("TIMEKEEPER_LOG_LEVEL", "error")
        configure_logging()
        assert logging.getLogger("timekeeper").level == logging.ERROR

    def test_json_renderer(self, capsys):
        configure_logging(level="INFO", format="json", force=True)
        get_logger("timekeeper.test").info("worker_registered", worker="nightly")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "worker_registered"
        assert payload["worker"] == "nightly"
        assert payload["level"] == "info"
        assert payload["logger"] == "timekeeper.test"
        assert "timestamp" in payload

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", format="json", force=True)
        get_logger("timekeeper.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(worker="nightly", tally=3)
        assert structlog.contextvars.get_contextvars() == {"worker": "nightly", "tally": 3}
        unbind_context("tally")
        assert structlog.contextvars.get_contextvars() == {"worker": "nightly"}

    def test_log_context(self):
        with LogContext(worker="nightly", tally=1) as ctx:
            assert isinstance(ctx, LogContext)
            assert structlog.contextvars.get_contextvars() == {"worker": "nightly", "tally": 1}
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_keeps_outer_bindings(self):
        bind_context(request="abc")
        with LogContext(worker="nightly"):
            pass
        assert structlog.contextvars.get_contextvars() == {"request": "abc"}

    def test_clear_context(self):
        bind_context(worker="nightly")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_events_captured(self):
        with capture_logs() as logs:
            get_logger("timekeeper.test").info("tick", worker="nightly")
        assert logs == [{"event": "tick", "worker": "nightly", "log_level": "info"}]
