"""Translation of driver errors into engine errors."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from mastery_engine.core.exceptions import ConcurrencyConflict, PersistenceError

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_PGCODES = {"40001", "40P01", "55P03"}
CONFLICT_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_conflict(exc: DBAPIError) -> bool:
    """Whether a driver error is lock contention rather than an outage."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in CONFLICT_PGCODES:
        return True
    text = str(exc.orig).lower()
    return any(marker in text for marker in CONFLICT_MESSAGES)


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """Re-raise storage failures as ConcurrencyConflict or PersistenceError.

    IntegrityError passes through untouched: callers use it to detect
    uniqueness races.
    """
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        if is_conflict(exc):
            logger.info(f"Lock contention during {operation}: {exc.orig}")
            raise ConcurrencyConflict(
                f"Contention while {operation}; retry the request",
                details={"operation": operation},
            ) from exc
        logger.error(f"Storage failure during {operation}: {exc.orig}")
        raise PersistenceError(
            f"Storage unavailable while {operation}",
            details={"operation": operation},
        ) from exc
    except PoolTimeoutError as exc:
        logger.error(f"Connection pool exhausted during {operation}")
        raise PersistenceError(
            f"Storage unavailable while {operation}",
            details={"operation": operation},
        ) from exc
