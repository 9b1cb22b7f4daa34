"""Per-operation log fields carried in a context variable."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from core.correlation import get_current_correlation_id, with_correlation

_log_fields: ContextVar[dict[str, Any]] = ContextVar("log_fields", default={})


def current_log_fields() -> dict[str, Any]:
    """Snapshot of the fields active in this context."""
    return dict(_log_fields.get())


class ContextFilter(logging.Filter):
    """Copies the active fields onto records that do not set them already."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Tag every record logged inside the block with ``fields``.

    Enclosing fields stay visible and inner values win. ``None`` values are
    skipped so optional ids can be passed straight through.
    """
    merged = {**_log_fields.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_fields.set(merged)
    try:
        yield
    finally:
        _log_fields.reset(token)


@contextmanager
def log_trip_context(
    trip_id: str,
    correlation_id: str | None = None,
    **fields: Any,
) -> Iterator[None]:
    """Tag records with ``trip_id`` and correlate them.

    An explicit ``correlation_id`` wins, then one already active in the
    caller's context, then the trip id itself.
    """
    correlation_id = correlation_id or get_current_correlation_id() or trip_id
    with with_correlation(correlation_id), log_context(trip_id=trip_id, **fields):
        yield
