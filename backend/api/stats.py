"""
Stats and environment API
"""
from typing import Optional

from fastapi import APIRouter, Depends

from middleware.auth import get_current_user_optional
from models.api.records import StatsResponse
from models.domain import User
from repositories import MemoryStore
from services.ipfs_client import IpfsClient
from .dependencies import get_ipfs, get_store

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    user: Optional[User] = Depends(get_current_user_optional),
    store: MemoryStore = Depends(get_store),
):
    """
    Platform counts; userContributions is 0 for anonymous callers.

    totalContributions counts pending plus accepted.
    """
    stats = await store.get_stats()
    user_contributions = len(await store.get_contributions_by_user(user.id)) if user else 0

    return StatsResponse(
        active_models=stats.active_models,
        compute_contributors=stats.compute_contributors,
        pending_contributions=stats.pending_contributions,
        accepted_contributions=stats.accepted_contributions,
        user_contributions=user_contributions,
        total_contributions=stats.pending_contributions + stats.accepted_contributions,
    )


@router.get("/environment")
async def get_environment(ipfs: IpfsClient = Depends(get_ipfs)):
    return {"ipfsConfigured": ipfs.is_configured}
