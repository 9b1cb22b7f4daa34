"""Standardized exception hierarchy for the dispatch core."""

from typing import Any


class DispatchError(Exception):
    """Base exception for all dispatch errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(DispatchError):
    """Errors that may succeed on retry."""

    pass


class PersistenceError(TransientError):
    """Trip store read or write failed (network, lock timeout, I/O)."""

    pass


class PermanentError(DispatchError):
    """Errors that will not succeed on retry."""

    pass


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class NotFoundError(PermanentError):
    """Requested trip or scheduled ride does not exist."""

    pass


class AlreadyClaimedError(PermanentError):
    """Another driver won the conditional accept.

    Callers should refresh their candidate list and keep polling.
    """

    pass


class InvariantViolationError(PermanentError):
    """Transition not permitted by the lifecycle state machine."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass
