"""Root logger wiring for the dispatch core."""

import logging
import sys
from typing import TextIO

from core.correlation import CorrelationFilter
from settings import AppSettings

from .context import ContextFilter
from .filters import PIIFilter
from .formatters import DevFormatter, JSONFormatter

HANDLER_NAME = "trike-dispatch"

QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def setup_logging(
    settings: AppSettings | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Install one masked, context-tagged handler on the root logger.

    Calling it again replaces the handler installed earlier and leaves
    any other handlers (test capture, embedding application) alone.
    """
    settings = settings or AppSettings()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(HANDLER_NAME)
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter(settings.environment))
    else:
        handler.setFormatter(DevFormatter())
    for log_filter in (PIIFilter(), ContextFilter(), CorrelationFilter()):
        handler.addFilter(log_filter)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
