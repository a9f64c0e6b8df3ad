"""Error handling middleware for consistent JSON error responses.

Every error body has the same shape:
- error: machine-readable code
- message: human-readable description
- errors: field-level violations, for validation failures
- request_id: correlation ID for debugging

Service-layer exceptions are mapped to HTTP statuses here, so routers can
let them propagate. Storage failures never expose driver messages.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from lendflow.api.middleware.request_id import get_request_id
from lendflow.services.errors import (
    DocumentReadTimeoutError,
    InvalidStatusTransitionError,
    InvalidStepError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DOCUMENT_TIMEOUT_MESSAGE = "Document loading timed out. Please try again."


class APIError(Exception):
    """Base exception for API errors with structured details."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 400,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.error = error
        self.message = message
        self.status_code = status_code
        self.errors = errors
        super().__init__(message)


class AuthenticationError(APIError):
    """Authentication error (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(error="unauthorized", message=message, status_code=401)


class AuthorizationError(APIError):
    """Authorization/permission error (403)."""

    def __init__(self, message: str = "Admin access required") -> None:
        super().__init__(error="forbidden", message=message, status_code=403)


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a standardized error response."""
    body: dict[str, Any] = {
        "error": error,
        "message": message,
    }
    if errors:
        body["errors"] = errors

    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def error_response_for(exc: Exception) -> JSONResponse | None:
    """Map a known exception to its error response, or None if unknown."""
    if isinstance(exc, APIError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return build_error_response(
            exc.error, exc.message, exc.status_code, exc.errors, headers=headers
        )
    if isinstance(exc, ValidationError):
        return build_error_response(
            "validation_error",
            exc.message,
            400,
            [error.to_dict() for error in exc.errors],
        )
    if isinstance(exc, InvalidStepError):
        return build_error_response("invalid_step", str(exc), 400)
    if isinstance(exc, NotFoundError):
        return build_error_response("not_found", f"{exc.resource} not found", 404)
    if isinstance(exc, InvalidStatusTransitionError):
        return build_error_response("invalid_transition", str(exc), 409)
    if isinstance(exc, DocumentReadTimeoutError):
        return build_error_response("timeout", DOCUMENT_TIMEOUT_MESSAGE, 408)
    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure: %s",
            exc.message,
            extra={
                "operation": exc.operation,
                "user_id": str(exc.user_id) if exc.user_id else None,
                "entity_id": str(exc.entity_id) if exc.entity_id else None,
            },
        )
        return build_error_response(
            "storage_error", "A storage error occurred. Please try again.", 500
        )
    if isinstance(exc, HTTPException):
        return build_error_response("http_error", str(exc.detail), exc.status_code)
    return None


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns consistent JSON errors.

    Unknown exceptions are logged and turned into a generic 500.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            response = error_response_for(exc)
            if response is not None:
                return response
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                error="internal_error",
                message="An internal error occurred",
                status_code=500,
            )
