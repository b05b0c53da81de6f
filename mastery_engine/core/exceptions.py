"""Engine exceptions with stable error codes.

Every failure that reaches a caller is one of these. The HTTP layer maps
them onto the standard error envelope via ``status_code`` and ``code``.
"""

from typing import Any

from fastapi import status


class EngineError(Exception):
    """Base engine error with standardized error code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "ENGINE_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize engine error."""
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(EngineError):
    """Malformed input, rejected before any mutation."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class NotFoundError(EngineError):
    """Unknown question, course, knowledge component or session."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConcurrencyConflict(EngineError):
    """Transient lock or transaction contention; the submission may be retried."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONCURRENCY_CONFLICT"
    retryable = True


class PersistenceError(EngineError):
    """Storage unavailable or timed out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "PERSISTENCE_UNAVAILABLE"
    retryable = True


class SessionClosedError(EngineError):
    """Answer submitted to a session that is already completed."""

    status_code = status.HTTP_409_CONFLICT
    code = "SESSION_CLOSED"


class SessionNotResumableError(EngineError):
    """Session is missing or completed; the caller must start a new one."""

    status_code = status.HTTP_409_CONFLICT
    code = "SESSION_NOT_RESUMABLE"
