"""
Models API

GET /api/models      - All models
GET /api/models/{id} - One model
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from models.api.records import ModelResponse
from repositories import MemoryStore
from .dependencies import get_store

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=List[ModelResponse])
async def list_models(store: MemoryStore = Depends(get_store)):
    return [ModelResponse.model_validate(m) for m in await store.get_all_models()]


@router.get("/{model_id}", response_model=ModelResponse)
async def get_model(model_id: int, store: MemoryStore = Depends(get_store)):
    model = await store.get_model(model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return ModelResponse.model_validate(model)
