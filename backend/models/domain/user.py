"""
User domain model
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class User:
    """
    User domain model - storage-agnostic representation

    Storage: in-memory entity store (users table)

    Token balance is only ever changed through reward crediting
    (accepted contributions, compute steps).
    """
    id: int
    username: str
    password_hash: str

    # Rewards
    tokens: int = 0

    # Compute network
    compute_provider: bool = False

    # Profile
    profile_image_cid: Optional[str] = None

