"""Structured Logging — JSON lines in production, readable lines in development.

Invariants:
    - Every line carries timestamp, level, logger and message
    - Known context keys (EXTRA_FIELDS) are emitted when a call site passes them
      through extra={...}; anything else on the record is ignored
    - setup_logging() is idempotent: calling it again replaces its own handler
      instead of stacking a second one

Design Decisions:
    - Call sites never know the active format; they log with extra={...} and
      the formatter decides
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "request_kind", "user_id", "error_code", "attempt",
    "elapsed_ms", "entity_kind", "entity_id", "path",
)

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in EXTRA_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text with the context keys appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = _context(record)
        if context:
            text += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return text


class _AgoraHandler(logging.StreamHandler):
    """Marker type so setup_logging can find the handler it installed."""


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _AgoraHandler)]:
        root.removeHandler(existing)

    handler = _AgoraHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else ConsoleFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if root.level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
