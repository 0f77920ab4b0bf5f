"""JSON-lines diagnostics for the command-line surface."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

ROOT_LOGGER_NAME = "skillidx"
_HANDLER_MARKER = "_skillidx_diagnostics"


def utc_timestamp(created: float | None = None) -> str:
    """Return an ISO-8601 UTC timestamp, from a record time when given."""
    moment = datetime.now(tz=UTC) if created is None else datetime.fromtimestamp(created, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonLineFormatter(logging.Formatter):
    """Render each record as one JSON object with sorted keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": utc_timestamp(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


def configure_logging(verbose: bool = False, stream: TextIO | None = None) -> logging.Handler:
    """Install the diagnostics handler on the package logger, replacing a previous one."""
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLineFormatter())
    setattr(handler, _HANDLER_MARKER, True)
    level = logging.DEBUG if verbose else logging.WARNING
    handler.setLevel(level)
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return handler
