"""
Logging setup for the Achievement Tracker.

One stderr handler on the root logger:
  - development / testing → ReadableFormatter (colored, one line per record)
  - production            → JSONFormatter (one JSON object per record)

RequestContextFilter stamps every record emitted while a request is being
served with its request id and acting user, so service and store log lines
can be correlated with the access log written by the timing middleware.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes copied into JSON output when present
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "achievement_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "pymongo")


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id from flask.g unless the caller passed them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "user_id", None) is None:
                principal = g.get("principal")
                record.user_id = principal.user_id if principal is not None else None
        return True


class JSONFormatter(logging.Formatter):
    """Machine-readable records for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": f"{record.module}:{record.lineno}",
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line records for a terminal."""

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
        tags = ""
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags += f" req={request_id}"
        achievement_id = getattr(record, "achievement_id", None)
        if achievement_id:
            tags += f" ach={achievement_id}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            tags += f" [{duration:.0f}ms]"
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}{tags}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler for ``app``.

    Level comes from LOG_LEVEL (default DEBUG outside production, INFO in
    production). Existing root handlers are replaced so repeated app
    creation in tests does not duplicate output.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if production else "readable")
