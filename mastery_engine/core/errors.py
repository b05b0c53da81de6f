"""Error envelope and FastAPI exception handlers.

Every error leaves the API as ``{error_code, message, details, request_id}``.
"""

import logging
import uuid
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mastery_engine.core.config import settings
from mastery_engine.core.exceptions import EngineError

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "1"


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error_code: str
    message: str
    details: Any | None = None
    request_id: str | None = None


def get_request_id(request: Request) -> str:
    """Request id set by the middleware, or a fresh one outside it."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Any | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        request_id=get_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def engine_exception_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Domain errors carry their own status and code; transient ones invite a retry."""
    headers = None
    if exc.retryable:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        headers = {"Retry-After": RETRY_AFTER_SECONDS}
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details, headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies and parameters, reported per field."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "issue": error.get("msg", "Validation error"),
            "type": error.get("type", "validation_error"),
        }
        for error in exc.errors()
    ]
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Invalid request data",
        details,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Framework HTTP errors such as 404 for unknown routes or 405."""
    details = None
    if isinstance(exc.detail, dict):
        details = dict(exc.detail)
        message = str(details.pop("message", "An error occurred"))
    else:
        message = str(exc.detail)
    return error_response(request, exc.status_code, "HTTP_ERROR", message, details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled is a 500; internals are hidden in prod."""
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    if settings.ENV == "prod":
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An internal server error occurred",
        )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        str(exc),
        {"type": type(exc).__name__},
    )
