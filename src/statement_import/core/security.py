"""JWT bearer token handling.

Tokens are issued by the identity service; this service only verifies
them and reads the user id from the ``sub`` claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from statement_import.config import settings

ACCESS_TOKEN_EXPIRE_MINUTES = 30


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Used by tests and local tooling; production tokens come from the
    identity service.

    Args:
        user_id: User ID to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def get_user_id_from_token(token: str) -> UUID:
    """
    Extract user ID from a JWT token.

    Args:
        token: JWT token string

    Returns:
        User ID as UUID

    Raises:
        JWTError: If token is invalid, expired or not an access token
        ValueError: If user ID is not a valid UUID
    """
    payload = decode_token(token)
    if payload.get("type", "access") != "access":
        raise JWTError("Not an access token")
    user_id_str = payload.get("sub")
    if user_id_str is None:
        raise JWTError("Token missing 'sub' claim")
    return UUID(user_id_str)
