"""JSON logging for the attempt service."""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from lms.core.config import settings

QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
}


class AttemptJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record: event name, level, logger, env plus any ``extra``."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["event"] = log_record.pop("message", record.getMessage())
        log_record["env"] = settings.ENV
        log_record.pop("asctime", None)


def setup_logging(level: str | None = None) -> None:
    """Route all logging to stdout as JSON. Safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(AttemptJsonFormatter("%(timestamp)s %(level)s %(logger)s", datefmt="%Y-%m-%dT%H:%M:%S"))
    root_logger.handlers[:] = [handler]

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
