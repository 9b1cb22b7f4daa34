"""Cross-cutting primitives: exceptions and correlation context."""

from .exceptions import (
    AlreadyClaimedError,
    ConfigurationError,
    DispatchError,
    InvariantViolationError,
    NotFoundError,
    PermanentError,
    PersistenceError,
    TransientError,
    ValidationError,
)

__all__ = [
    "AlreadyClaimedError",
    "ConfigurationError",
    "DispatchError",
    "InvariantViolationError",
    "NotFoundError",
    "PermanentError",
    "PersistenceError",
    "TransientError",
    "ValidationError",
]
