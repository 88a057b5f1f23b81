"""Structured logging configuration.

Log calls across the service use snake_case event names as the message and
pass identifiers through ``extra=``; the JSON formatter nests those under
``"extra"`` next to the service and environment names.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet

from fittrack.core.config import AppSettings

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_ATTRS: FrozenSet[str] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = {
    # Temporal's SDK logs every poll at INFO.
    "temporalio": logging.WARNING,
    "botocore": logging.WARNING,
    "boto3": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """One JSON document per log line."""

    def __init__(self, service_name: str, environment: str | None = None) -> None:
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if self.environment:
            log_entry["environment"] = self.environment

        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        if extra:
            log_entry["extra"] = extra

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_logging(settings: AppSettings) -> None:
    """Install a single stdout handler on the root logger."""

    level = getattr(logging, settings.log_level, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    if settings.log_json:
        handler.setFormatter(JsonFormatter(settings.service_name, settings.environment))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # uvicorn installs its own handlers; route everything through ours instead.
    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"):
        logging.getLogger(logger_name).handlers = []
        logging.getLogger(logger_name).propagate = True

    for logger_name, floor in _QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(max(level, floor))
