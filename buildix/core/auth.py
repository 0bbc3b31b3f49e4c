"""
Auth utilities for the Buildix API.

Validates the web app's session JWT (HS256, AUTH_JWT_SECRET) and mirrors
the user into app_users. Falls back to the X-User-Id / X-User-Email
headers outside production (local tools and tests).
"""
from fastapi import Depends, Header, Request
from typing import Any, Dict, Optional
import jwt
import logging

from buildix.core.config import settings
from buildix.core.errors import ForbiddenError, UnauthorizedError
from buildix.features.users.service import upsert_user
from buildix.models.user import User

logger = logging.getLogger("buildix")


def verify_session_jwt(token: str) -> Dict[str, Any]:
    """
    Verify a session JWT and return its claims.

    Raises:
        UnauthorizedError: secret not configured, token invalid or expired,
            or no 'sub' claim
    """
    if not settings.AUTH_JWT_SECRET:
        raise UnauthorizedError("Token authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug("auth.invalid_token", extra={"error_type": type(e).__name__})
        raise UnauthorizedError("Invalid token")

    if not payload.get("sub"):
        raise UnauthorizedError("Token has no 'sub' claim")
    return payload


def header_identity_allowed() -> bool:
    return settings.AUTH_ALLOW_HEADER_IDENTITY and settings.ENV.lower() not in ("production", "prod")


def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Development/test user id"),
    x_user_email: Optional[str] = Header(None, description="Development/test user email"),
) -> User:
    """
    Resolve the calling user.

    Priority:
    1. Bearer JWT from the Authorization header
    2. X-User-Id header (non-production only)
    3. 401
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        claims = verify_session_jwt(auth_header[7:])
        return upsert_user(claims["sub"], email=claims.get("email"), role=claims.get("role"))

    if x_user_id and header_identity_allowed():
        return upsert_user(x_user_id, email=x_user_email)

    raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin role required")
    return user
