"""
Logging setup for the Completions Tracker.

configure_logging(app) installs one stderr handler on the root logger:
  - JSONFormatter in production (one object per line)
  - ReadableFormatter in development and tests
LOG_LEVEL picks the level, LOG_FORMAT=json|text overrides the formatter.

Records logged inside a request carry its X-Request-ID, so a slow AI
provider call and the request that triggered it share one id.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes callers pass through ``extra=`` that are worth keeping
_EXTRA_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "user_id",
    "project_id",
    "system_id",
    "entity_type",
    "strategy",
)

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


def _request_id(record: logging.LogRecord) -> str | None:
    rid = getattr(record, "request_id", None)
    if rid:
        return rid
    if has_request_context():
        return getattr(g, "request_id", None)
    return None


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the request id and scope extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        rid = _request_id(record)
        if rid:
            entry["request_id"] = rid
        entry.update({
            key: getattr(record, key)
            for key in _EXTRA_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        scope = [
            f"{label}={getattr(record, key)}"
            for key, label in (("project_id", "project"), ("system_id", "system"))
            if getattr(record, key, None)
        ]
        if scope:
            line += f" ({', '.join(scope)})"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler for ``app``'s environment.

    Safe to call once per create_app(); earlier root handlers are replaced.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "text").lower()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
