"""Translation of catalog errors into HTTP responses.

Route definitions live outside this package; whatever routes are mounted
get consistent status codes and the standard error body::

    {"error_code": ..., "message": ..., "details": [...], "request_id": ...}
"""

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from dairycart.domain.exceptions import (
    ConflictError,
    DomainError,
    InvariantViolationError,
    NotFoundError,
    StorageFailureError,
)

logger = structlog.get_logger()


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# Most specific class first.
ERROR_STATUS_CODES: list[tuple[type[DomainError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvariantViolationError, status.HTTP_400_BAD_REQUEST),
    (StorageFailureError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_code_for(exc: DomainError) -> int:
    """Get the HTTP status code for a domain error."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: list[ErrorDetail] | None = None,
) -> JSONResponse:
    """Build a JSON error response in the standard format."""
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details or [],
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _domain_details(details: dict[str, Any]) -> list[ErrorDetail]:
    return [ErrorDetail(field=key, message=str(value)) for key, value in details.items()]


def _validation_details(errors: list[dict[str, Any]]) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(part) for part in error.get("loc", ())) or None,
            message=error.get("msg", ""),
        )
        for error in errors
    ]


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate a domain error."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(
            "Catalog storage failure",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message,
        )
    return error_response(
        request,
        status_code,
        exc.error_code,
        exc.message,
        _domain_details(exc.details),
    )


async def validation_error_handler(
    request: Request,
    exc: ValidationError | RequestValidationError,
) -> JSONResponse:
    """Translate a pydantic validation error into a 400."""
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "VALIDATION_ERROR",
        "Request validation failed",
        _validation_details(list(exc.errors())),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
    else:
        error_code = "ERROR"
        message = str(detail)
    return error_response(request, exc.status_code, error_code, message)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the catalog error handlers on an application.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
