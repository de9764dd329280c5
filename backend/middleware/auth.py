"""
Authentication dependencies
"""

from fastapi import Request, HTTPException
from typing import Optional

from models.domain import User
from .jwt_session import COOKIE_NAME, user_id_from_token


def token_from_request(request: Request) -> Optional[str]:
    """
    Session token from the access_token cookie or an Authorization: Bearer
    header (cookie wins).
    """
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_current_user_optional(request: Request) -> Optional[User]:
    """
    Get current user from JWT token (optional - doesn't raise if not authenticated)

    Returns:
        User if authenticated and still known to the store, None otherwise
    """
    user_id = user_id_from_token(token_from_request(request))
    if user_id is None:
        return None

    store = request.app.state.store
    return await store.get_user(user_id)


async def get_current_user(request: Request) -> User:
    """
    Get current user (required - raises 401 if not authenticated)

    Raises:
        HTTPException 401 if not authenticated
    """
    user = await get_current_user_optional(request)

    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return user
