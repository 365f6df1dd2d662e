"""
Authentication and authorization dependencies for FastAPI.

This module provides FastAPI dependency functions for authentication,
authorization, and request metadata extraction.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.database import get_session
from core.security import (
    SecurityError,
    TokenExpiredError,
    TokenInvalidError,
    decode_token,
    get_user_id_from_token,
)
from db import User, UserRole

# HTTP Bearer security scheme
security = HTTPBearer()

SUPER_ADMIN_REQUIRED = "Access denied. Super admin privileges required."


class AuthenticationError(HTTPException):
    """Custom authentication error."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    """Custom authorization error."""

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials containing the JWT token
        db: Database session

    Returns:
        User object with roles loaded

    Raises:
        AuthenticationError: If token is invalid or user not found
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
        user_id = get_user_id_from_token(payload)

        result = await db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.user_roles).selectinload(UserRole.role))
        )
        user = result.scalar_one_or_none()

        if not user:
            raise AuthenticationError("User not found")

        if not user.is_active:
            raise AuthenticationError("User account is inactive")

        return user

    except (TokenExpiredError, TokenInvalidError, SecurityError) as e:
        raise AuthenticationError(str(e))
    except AuthenticationError:
        raise


def has_role(user: User, role_name: str) -> bool:
    """Check if user has a specific active role.

    Args:
        user: User object with user_roles loaded
        role_name: Role name to check (case-insensitive)
    """
    if not user.user_roles:
        return False

    role_name_lower = role_name.lower()

    for user_role in user.user_roles:
        if user_role.role and user_role.role.name and user_role.role.name.lower() == role_name_lower:
            if user_role.is_active and not user_role.is_deleted and user_role.role.is_active:
                return True

    return False


def is_administrator(user: User) -> bool:
    """Administrators bypass incident report access grants."""
    return user.is_super_admin or has_role(user, "superadmin") or has_role(user, "admin")


async def require_super_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Require user to have the is_super_admin flag or 'superadmin' role.

    Raises:
        AuthorizationError: If the user is not a super administrator
    """
    if user.is_super_admin:
        return user

    if not has_role(user, "superadmin"):
        raise AuthorizationError(SUPER_ADMIN_REQUIRED)

    return user


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request.

    Checks headers in this order of priority:
    1. X-Forwarded-For: Standard proxy/load balancer header
    2. X-Real-IP: Alternative proxy header
    3. Direct connection IP: Fallback
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")
