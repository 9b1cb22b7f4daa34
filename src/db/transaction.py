"""Transaction utilities for explicit transaction boundaries.

This module provides context managers for managing database transactions
with automatic commit/rollback semantics to prevent partial state updates.
Driver errors are surfaced as PersistenceError so callers only ever see the
dispatch exception hierarchy.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import PersistenceError


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Context manager for explicit transaction boundaries.

    Commits on successful completion, rolls back on any exception.

    Example:
        with session_factory() as session, transaction(session):
            trips.create(trip)
            stats.recompute(driver_id)

    Raises:
        PersistenceError: The store rejected a statement or the commit
            (lock timeout, I/O error, constraint failure).
        Any other exception raised within the context (after rollback).
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(
            f"Trip store operation failed: {exc.__class__.__name__}",
            details={"error": str(exc)},
        ) from exc
    except Exception:
        session.rollback()
        raise

