"""API middleware and request dependencies."""

from lendflow.api.middleware.auth import (
    AuthenticatedUser,
    require_admin_user,
    require_authenticated_user,
    verify_token,
)
from lendflow.api.middleware.errors import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ErrorHandlerMiddleware,
    build_error_response,
)
from lendflow.api.middleware.request_id import RequestIDMiddleware, get_request_id

__all__ = [
    "APIError",
    "AuthenticatedUser",
    "AuthenticationError",
    "AuthorizationError",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "build_error_response",
    "get_request_id",
    "require_admin_user",
    "require_authenticated_user",
    "verify_token",
]
