"""
Pydantic models for User
"""

from pydantic import BaseModel, Field
from typing import Optional

from .base import CamelModel


class UserCredentials(BaseModel):
    """Registration / login body"""
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=256)


class UserResponse(CamelModel):
    """Public user model (never includes the credential hash)"""
    id: int
    username: str
    tokens: int
    compute_provider: bool
    profile_image_cid: Optional[str] = None
