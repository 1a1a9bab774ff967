"""Structured JSON logging for poisonpill.

Loggers: poisonpill.dispatcher, poisonpill.container, poisonpill.counter.
Routing context is passed with extra= and emitted as top-level JSON keys.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.makeLogRecord({})).keys()
)

# Emitted first, in this order, when present on a record
ROUTING_FIELDS = ("message_id", "handler", "retry_count", "max_retries", "route", "destination", "outcome")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, UTC ISO8601 timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, getattr(record, field)) for field in ROUTING_FIELDS if hasattr(record, field)
        )
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        try:
            return json.dumps(entry, default=str)
        except (TypeError, ValueError):
            return str(entry)


def get_logger(name: str = "poisonpill", level: int = logging.INFO) -> logging.Logger:
    """Return the named logger, writing JSON to stderr.

    The handler is installed once per logger. Records do not propagate to
    the root logger.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
