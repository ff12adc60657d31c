"""Centralized logging configuration for the deploy pipeline.

Three output formats are supported through ``LOG_FORMAT``:

- ``text``: human-readable lines for local runs.
- ``json``: one JSON object per line for log collectors.
- ``github``: GitHub Actions workflow commands, so warnings and errors
  show up as annotations on the run. Selected automatically when
  ``GITHUB_ACTIONS=true`` and ``LOG_FORMAT`` is unset.

Records may carry ``stage`` and ``environment`` extras
(``logger.info(..., extra={"stage": name})``); every formatter includes
them when present.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

CONTEXT_FIELDS = ("stage", "environment")

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _context(record: logging.LogRecord) -> dict[str, str]:
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value:
            context[name] = str(value)
    return context


class JSONFormatter(logging.Formatter):
    """JSON log formatter for CI log collectors.

    Produces one JSON object per line (NDJSON) with fields:
    timestamp, level, logger, message, the context extras that are set,
    and optionally exception.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    """Human-readable formatter that prefixes the message with its context."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _context(record)
        if not context:
            return line
        prefix = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{line} ({prefix})"


class GitHubActionsFormatter(logging.Formatter):
    """Formats records as GitHub Actions workflow commands.

    WARNING becomes ``::warning``, ERROR and above ``::error``; lower levels
    are printed as plain lines. See
    https://docs.github.com/actions/using-workflows/workflow-commands-for-github-actions
    """

    COMMANDS = {
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    @staticmethod
    def escape(value: str) -> str:
        return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info and record.exc_info[0] is not None:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        context = _context(record)
        title = context.get("stage") or context.get("environment") or record.name

        command = self.COMMANDS.get(record.levelno)
        if command is None:
            return f"[{title}] {message}"
        return f"::{command} title={self.escape(title)}::{self.escape(message)}"


def configure_logging(level_override: Optional[str] = None) -> None:
    """Configure logging based on environment variables.

    Args:
        level_override: If set, takes precedence over LOG_LEVEL env var.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
            Defaults to INFO.
        LOG_FORMAT: "text", "json" or "github". Defaults to "github" under
            GitHub Actions and "text" elsewhere; unknown values mean "text".
    """
    level_name = (level_override or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    default_format = "github" if os.getenv("GITHUB_ACTIONS") == "true" else "text"
    log_format = os.getenv("LOG_FORMAT", default_format).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    elif log_format == "github":
        handler.setFormatter(GitHubActionsFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)

    # Health checks and webhooks log every request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
