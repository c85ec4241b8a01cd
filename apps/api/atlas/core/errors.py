"""Standardized error responses across all API endpoints."""
from typing import Any

import sentry_sdk
import structlog
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all API error handlers."""
    error: str
    message: str
    detail: Any = None
    request_id: str = "unknown"


class StorageUnavailableError(RuntimeError):
    """The durable collection slot could not be read or written.

    Raised by every repository implementation; the invoking operation fails
    and the persisted collection is left as it was before the call.
    """

    def __init__(self, key: str, operation: str, reason: str = "") -> None:
        self.key = key
        self.operation = operation
        self.reason = reason
        message = f"Storage slot '{key}' unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


logger = structlog.get_logger()


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a consistent JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        request_id=request_id,
    )

    sentry_sdk.capture_exception(exc)

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred. Our team has been notified.",
            request_id=request_id,
        ).model_dump(),
    )


async def storage_unavailable_handler(
    request: Request, exc: StorageUnavailableError
) -> JSONResponse:
    """Storage faults are fatal to the request but retryable by the caller."""
    request_id = request.headers.get("x-request-id", "unknown")

    logger.error(
        "storage_unavailable",
        key=exc.key,
        operation=exc.operation,
        reason=exc.reason,
        path=request.url.path,
        request_id=request_id,
    )

    sentry_sdk.capture_exception(exc)

    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error="storage_unavailable",
            message="Marketplace storage is temporarily unavailable. Please retry.",
            detail={"key": exc.key, "operation": exc.operation},
            request_id=request_id,
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Standardize HTTPException responses into the same JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    if isinstance(exc.detail, dict):
        error = exc.detail.get("error", f"http_{exc.status_code}")
        message = exc.detail.get("message", str(exc.detail))
        detail: Any = exc.detail.get("detail")
    else:
        error = f"http_{exc.status_code}"
        message = str(exc.detail)
        detail = exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            detail=detail,
            request_id=request_id,
        ).model_dump(),
        headers=dict(exc.headers or {}),
    )
