"""Process logging for s3serve.

Records go to stderr as one JSON object per line. Structured fields passed
as ``extra={"extra": {...}}`` are lifted into the top level of that object.
The startup banner stays human readable.
"""

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

# loggers that follow the configured level; everything else inherits from root
SERVICE_LOGGERS = ("http", "s3serve.gateway")
# boto3 debug output would bury the access log
QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def build_logging_config(level: str = "INFO") -> dict[str, Any]:
    level = level.upper()
    loggers: dict[str, Any] = {name: {"level": level} for name in SERVICE_LOGGERS}
    loggers.update({name: {"level": "WARNING"} for name in QUIET_LOGGERS})
    loggers["s3serve.startup"] = {
        "handlers": ["banner"],
        "level": "INFO",
        "propagate": False,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "banner": {"format": "%(asctime)s %(levelname)s %(message)s"},
        },
        "handlers": {
            "stderr": {"class": "logging.StreamHandler", "formatter": "json"},
            "banner": {"class": "logging.StreamHandler", "formatter": "banner"},
        },
        "root": {"level": level, "handlers": ["stderr"]},
        "loggers": loggers,
    }


def setup_logging(level: str = "INFO") -> None:
    dictConfig(build_logging_config(level))


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            # reserved keys win over caller fields
            payload = {**fields, **payload}
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
