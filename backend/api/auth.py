"""
Authentication API router - username/password accounts with JWT sessions

POST /api/register - Create account and start a session
POST /api/login    - Start a session
POST /api/logout   - Clear the session cookie
GET  /api/user     - Current user
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from config import Settings
from middleware.auth import get_current_user
from middleware.jwt_session import COOKIE_NAME, create_access_token
from middleware.passwords import hash_password, verify_password
from models.api.user import UserCredentials, UserResponse
from models.domain import User
from repositories import MemoryStore
from .dependencies import get_app_settings, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["authentication"])


def _start_session(response: Response, user: User, settings: Settings):
    response.set_cookie(
        key=COOKIE_NAME,
        value=create_access_token(user),
        httponly=True,
        max_age=settings.jwt_expire_minutes * 60,
        samesite="lax",
        secure=settings.environment == "production",
    )


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    credentials: UserCredentials,
    response: Response,
    store: MemoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create an account and log it in.

    Returns 400 if the username is taken.
    """
    try:
        user = await store.create_user(credentials.username, hash_password(credentials.password))
    except ValueError:
        raise HTTPException(status_code=400, detail="Username already exists")

    _start_session(response, user, settings)
    logger.info(f"Registered user {user.id} ({user.username})")
    return UserResponse.model_validate(user)


@router.post("/login", response_model=UserResponse)
async def login(
    credentials: UserCredentials,
    response: Response,
    store: MemoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    user = await store.get_user_by_username(credentials.username)
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    _start_session(response, user, settings)
    logger.info(f"User {user.id} logged in")
    return UserResponse.model_validate(user)


@router.post("/logout")
async def logout(response: Response):
    """Clears session cookie"""
    response.delete_cookie(key=COOKIE_NAME)
    return {"success": True}


@router.get("/user", response_model=UserResponse)
async def current_user(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)
