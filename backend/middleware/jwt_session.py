"""
JWT session management

The same token authenticates HTTP requests (cookie or bearer header) and
WebSocket connections.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from config import get_settings

COOKIE_NAME = "access_token"


def create_access_token(user) -> str:
    """
    Create JWT access token for user

    Args:
        user: User model with id and username

    Returns:
        JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)

    payload = {
        "sub": str(user.id),
        "username": user.username,
        "exp": expire,
        "iat": now
    }

    token = jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )

    return token


def decode_access_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Returns:
        Decoded payload dict

    Raises:
        jose.JWTError if token invalid/expired
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm]
    )

    return payload


def user_id_from_token(token: Optional[str]) -> Optional[int]:
    """
    Resolve the user id carried by a token.

    Returns:
        User id, or None for a missing, invalid or expired token
    """
    if not token:
        return None
    try:
        payload = decode_access_token(token)
        return int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None
