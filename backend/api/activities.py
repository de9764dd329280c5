"""
Activity feed API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from models.api.records import ActivityResponse
from repositories import MemoryStore
from .dependencies import get_store

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("/{model_id}", response_model=List[ActivityResponse])
async def list_activities(
    model_id: int,
    limit: Optional[int] = Query(None, ge=1),
    store: MemoryStore = Depends(get_store),
):
    """Activities for a model, newest first"""
    activities = await store.get_activities(model_id, limit)
    return [ActivityResponse.model_validate(a) for a in activities]
