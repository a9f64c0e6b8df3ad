"""Authentication dependencies for API routes.

Callers present a JWT either in the auth cookie or as a Bearer token.
The token carries userId, email and role claims; no server-side session
is kept.

Usage:
    from lendflow.api.middleware.auth import require_authenticated_user

    @router.get("/profile")
    async def get_profile(user: AuthenticatedUser = Depends(require_authenticated_user)):
        ...
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from lendflow.api.middleware.errors import AuthenticationError, AuthorizationError
from lendflow.core.config import AuthSettings, Settings
from lendflow.core.settings import get_settings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """Identity resolved from a verified token.

    Attributes:
        user_id: Subject of the token.
        email: Email claim, if present.
        role: Role claim; "user" when absent.
    """

    user_id: uuid.UUID
    email: str | None = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def settings_from_request(request: Request) -> Settings:
    """Settings bound to the app, falling back to the process-wide ones."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def verify_token(token: str, auth: AuthSettings) -> AuthenticatedUser:
    """Decode and check a JWT, returning the identity it carries.

    Raises:
        AuthenticationError: If the token is invalid, expired, or lacks a
            usable userId claim.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            auth.jwt_secret.get_secret_value(),
            algorithms=[auth.jwt_algorithm],
        )
    except JWTError as e:
        logger.info("Rejected token: %s", e)
        raise AuthenticationError("Invalid or expired token") from e

    try:
        user_id = uuid.UUID(str(payload.get("userId")))
    except ValueError:
        raise AuthenticationError("Invalid or expired token") from None

    return AuthenticatedUser(
        user_id=user_id,
        email=payload.get("email"),
        role=payload.get("role") or "user",
    )


def _extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    cookie_name: str,
) -> str | None:
    token = request.cookies.get(cookie_name)
    if token:
        return token
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def require_authenticated_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """Dependency resolving the caller from the auth cookie or Bearer header.

    Raises:
        AuthenticationError: 401 if no valid token is presented.
    """
    settings = settings_from_request(request)
    token = _extract_token(request, credentials, settings.auth.cookie_name)
    if not token:
        raise AuthenticationError()

    user = verify_token(token, settings.auth)
    request.state.user = user
    return user


async def require_admin_user(
    user: AuthenticatedUser = Depends(require_authenticated_user),
) -> AuthenticatedUser:
    """Dependency requiring the admin role.

    Raises:
        AuthorizationError: 403 if the caller is not an admin.
    """
    if not user.is_admin:
        logger.warning("Non-admin user %s attempted an admin operation", user.user_id)
        raise AuthorizationError()
    return user
