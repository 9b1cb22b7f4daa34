"""JSON and console formatters that surface trip and ride tags."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

CONTEXT_FIELDS = ("trip_id", "ride_id", "driver_id", "passenger_id", "correlation_id")


def context_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Context tags present on ``record``, in ``CONTEXT_FIELDS`` order."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own time."""

    def __init__(self, environment: str = "development"):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": self.environment,
            **context_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class DevFormatter(logging.Formatter):
    """Console lines with the context tags appended in brackets."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        tags = " ".join(
            f"{name}={value}" for name, value in context_fields(record).items() if value != "-"
        )
        return f"{line} [{tags}]" if tags else line
