"""
Security utilities for JWT token validation.

Tokens are issued by the identity service in front of this API; this
module validates them and can mint compatible tokens for tooling.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from core.config import settings


class SecurityError(Exception):
    """Base exception for security-related errors."""

    pass


class TokenExpiredError(SecurityError):
    """Raised when a token has expired."""

    pass


class TokenInvalidError(SecurityError):
    """Raised when a token is invalid."""

    pass


def create_access_token(
    user_id: int, username: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token for the given user.

    Args:
        user_id: Subject of the token
        username: Included for log readability on the consumer side
        expires_delta: Custom expiration time delta

    Returns:
        JWT access token string

    Raises:
        SecurityError: If token creation fails
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        or timedelta(minutes=settings.security.access_token_expire_minutes)
    )

    payload = {
        "sub": str(user_id),
        "username": username,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid4()),
        "iss": settings.security.jwt_issuer,
        "aud": settings.security.jwt_audience,
    }

    try:
        return jwt.encode(
            payload,
            settings.security.jwt_secret_key_property,
            algorithm=settings.security.algorithm,
        )
    except Exception as e:
        raise SecurityError(f"Failed to create access token: {str(e)}")


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is invalid
        SecurityError: For other security issues
    """
    try:
        return jwt.decode(
            token,
            settings.security.jwt_secret_key_property,
            algorithms=[settings.security.algorithm],
            audience=settings.security.jwt_audience,
            issuer=settings.security.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {str(e)}")
    except Exception as e:
        raise SecurityError(f"Token decode error: {str(e)}")


def get_user_id_from_token(payload: Dict[str, Any]) -> int:
    """Extract user ID from token payload.

    Raises:
        TokenInvalidError: If user ID is missing or not an integer
    """
    sub = payload.get("sub")
    if not sub:
        raise TokenInvalidError("User ID missing from token")

    try:
        return int(sub)
    except (TypeError, ValueError):
        raise TokenInvalidError("User ID in token is not valid")
