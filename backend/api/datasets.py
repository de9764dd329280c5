"""
Datasets API - named references to data stored on IPFS
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from config import Settings
from middleware.auth import get_current_user
from models.api.storage import DatasetCreate, DatasetResponse
from models.domain import ActivityAction, Dataset, User
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.ipfs_client import IpfsClient
from .dependencies import get_app_settings, get_broadcaster, get_ipfs, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/datasets", tags=["datasets"])


def dataset_response(dataset: Dataset, ipfs: IpfsClient) -> DatasetResponse:
    response = DatasetResponse.model_validate(dataset)
    response.gateway_url = ipfs.gateway_url_for(dataset.data_cid)
    return response


@router.post("", response_model=DatasetResponse, status_code=201)
async def create_dataset(
    body: DatasetCreate,
    user: User = Depends(get_current_user),
    store: MemoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    ipfs: IpfsClient = Depends(get_ipfs),
    settings: Settings = Depends(get_app_settings),
):
    dataset = await store.create_dataset(
        name=body.name,
        description=body.description,
        data_cid=body.data_cid,
        format=body.format,
        user_id=user.id,
        size_bytes=body.size_bytes,
    )
    activity = await store.create_activity(
        model_id=settings.default_model_id if body.model_id is None else body.model_id,
        user_id=user.id,
        action=ActivityAction.CREATED_DATASET,
        description=f"Created dataset: {dataset.name}",
        related_cid=dataset.data_cid,
    )
    await broadcaster.broadcast_new_activity(activity)

    logger.info(f"User {user.id} created dataset {dataset.id} ({dataset.data_cid})")
    return dataset_response(dataset, ipfs)


@router.get("/user", response_model=List[DatasetResponse])
async def list_my_datasets(
    user: User = Depends(get_current_user),
    store: MemoryStore = Depends(get_store),
    ipfs: IpfsClient = Depends(get_ipfs),
):
    return [dataset_response(d, ipfs) for d in await store.get_datasets_by_user(user.id)]


@router.get("/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: int,
    store: MemoryStore = Depends(get_store),
    ipfs: IpfsClient = Depends(get_ipfs),
):
    dataset = await store.get_dataset(dataset_id)
    if not dataset:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return dataset_response(dataset, ipfs)
