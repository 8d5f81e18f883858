"""Logging setup: JSON lines for service loggers, plain text for startup."""

import json
import logging
from logging.config import dictConfig

# AWS SDK and HTTP pool loggers that dump wire traffic at DEBUG
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3")


def _logging_config(level: str) -> dict:
    loggers: dict[str, dict] = {name: {"level": "WARNING"} for name in QUIET_LOGGERS}
    loggers["app.startup"] = {
        "handlers": ["startup"],
        "level": "INFO",
        "propagate": False,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "plain": {"format": "%(levelname)s %(name)s: %(message)s"},
        },
        "handlers": {
            "json": {"class": "logging.StreamHandler", "formatter": "json"},
            "startup": {"class": "logging.StreamHandler", "formatter": "plain"},
        },
        "root": {"level": level, "handlers": ["json"]},
        "loggers": loggers,
    }


def setup_logging(level: str = "INFO") -> None:
    dictConfig(_logging_config(level))


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Structured fields passed as ``extra={"extra": {...}}`` are merged into the
    top level of the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
