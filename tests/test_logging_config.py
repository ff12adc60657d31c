"""Tests for centralized logging configuration."""

import json
import logging
import os
import sys
from unittest.mock import patch

import pytest

from shipit.logging_config import (
    NOISY_LOGGERS,
    GitHubActionsFormatter,
    JSONFormatter,
    TextFormatter,
    configure_logging,
)


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_defaults_to_info_text(self):
        with patch.dict(os.environ, {}, clear=True):
            configure_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_log_level_from_env(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=True):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_level_override_takes_precedence(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True):
            configure_logging(level_override="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "NOTREAL"}, clear=True):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_json_format(self):
        with patch.dict(os.environ, {"LOG_FORMAT": "json"}, clear=True):
            configure_logging()
        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_clears_existing_handlers(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())
        root.addHandler(logging.StreamHandler())
        assert len(root.handlers) >= 2

        with patch.dict(os.environ, {}, clear=True):
            configure_logging()
        assert len(root.handlers) == 1

    def test_quiets_http_client_loggers(self):
        with patch.dict(os.environ, {}, clear=True):
            configure_logging()
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def _record(self, **kwargs) -> logging.LogRecord:
        defaults = dict(
            name="shipit.scheduler",
            level=logging.INFO,
            pathname="scheduler.py",
            lineno=1,
            msg="Stage %s started",
            args=("build",),
            exc_info=None,
        )
        defaults.update(kwargs)
        return logging.LogRecord(**defaults)

    def test_produces_valid_json(self):
        data = json.loads(JSONFormatter().format(self._record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "shipit.scheduler"
        assert data["message"] == "Stage build started"
        assert "T" in data["timestamp"]
        assert "exception" not in data
        assert "stage" not in data

    def test_includes_stage_extra(self):
        record = self._record()
        record.stage = "deploy"
        data = json.loads(JSONFormatter().format(record))
        assert data["stage"] == "deploy"

    def test_includes_exception_info(self):
        try:
            raise ValueError("registry unreachable")
        except ValueError:
            exc_info = sys.exc_info()

        record = self._record(level=logging.ERROR, msg="Publish failed", args=(), exc_info=exc_info)
        data = json.loads(JSONFormatter().format(record))
        assert data["level"] == "ERROR"
        assert "ValueError: registry unreachable" in data["exception"]


def _make_record(level=logging.INFO, msg="Stage %s started", args=("build",), **extras):
    record = logging.LogRecord(
        name="shipit.executor.stage_executor",
        level=level,
        pathname="stage_executor.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestFormatSelection:
    def test_github_format_under_actions(self):
        with patch.dict(os.environ, {"GITHUB_ACTIONS": "true"}, clear=True):
            configure_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, GitHubActionsFormatter)

    def test_explicit_format_wins_under_actions(self):
        with patch.dict(os.environ, {"GITHUB_ACTIONS": "true", "LOG_FORMAT": "json"}, clear=True):
            configure_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_unknown_format_is_text(self):
        with patch.dict(os.environ, {"LOG_FORMAT": "xml"}, clear=True):
            configure_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, TextFormatter)


class TestTextFormatter:
    def test_plain_record(self):
        line = TextFormatter().format(_make_record())
        assert line.endswith("[INFO] shipit.executor.stage_executor: Stage build started")

    def test_context_suffix(self):
        line = TextFormatter().format(_make_record(stage="build"))
        assert line.endswith("Stage build started (stage=build)")


class TestGitHubActionsFormatter:
    def test_info_is_plain_line(self):
        line = GitHubActionsFormatter().format(_make_record(stage="build"))
        assert line == "[build] Stage build started"

    def test_error_becomes_annotation(self):
        record = _make_record(
            level=logging.ERROR, msg="Stage '%s' failed: %s", args=("test", "exit 1"), stage="test"
        )
        line = GitHubActionsFormatter().format(record)
        assert line == "::error title=test::Stage 'test' failed: exit 1"

    def test_warning_uses_environment_title(self):
        record = _make_record(
            level=logging.WARNING, msg="Rolling back", args=(), environment="production"
        )
        assert GitHubActionsFormatter().format(record).startswith("::warning title=production::")

    def test_multiline_message_is_escaped(self):
        record = _make_record(level=logging.ERROR, msg="100% failed\nsee log", args=())
        line = GitHubActionsFormatter().format(record)
        assert line.endswith("::100%25 failed%0Asee log")
        assert "\n" not in line
