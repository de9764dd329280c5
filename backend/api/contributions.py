"""
Contributions API - submit, list and process contributions

GET  /api/contributions?modelId=|status= - Contributions by model or status
GET  /api/contributions/user             - Caller's contributions
POST /api/contributions                  - Submit a contribution
POST /api/contributions/{id}/apply       - Accept and apply to the model
POST /api/contributions/{id}/reject      - Reject (reward 0)

Every mutation is pushed to connected clients over /ws.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from config import Settings
from middleware.auth import get_current_user
from models.api.records import ApplyResult, ContributionCreate, ContributionResponse
from models.domain import ActivityAction, ContributionStatus, User
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.contribution_engine import ContributionEngine
from services.errors import (
    ContributionAlreadyProcessedError,
    ContributionNotFoundError,
    LifecycleError,
    ModelNotFoundError,
)
from .dependencies import get_app_settings, get_broadcaster, get_engine, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/contributions", tags=["contributions"])


def lifecycle_http_error(error: LifecycleError) -> HTTPException:
    """Map an engine failure onto the HTTP error taxonomy"""
    if isinstance(error, ContributionNotFoundError):
        return HTTPException(status_code=404, detail="Contribution not found")
    if isinstance(error, ModelNotFoundError):
        return HTTPException(status_code=404, detail="Model not found")
    if isinstance(error, ContributionAlreadyProcessedError):
        return HTTPException(status_code=400, detail="Contribution already processed")
    return HTTPException(status_code=404, detail=str(error))


@router.get("", response_model=List[ContributionResponse])
async def list_contributions(
    model_id: Optional[int] = Query(None, alias="modelId"),
    status: Optional[ContributionStatus] = Query(None),
    store: MemoryStore = Depends(get_store),
):
    """Exactly one of modelId or status must be given"""
    if (model_id is None) == (status is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of modelId or status")

    if model_id is not None:
        contributions = await store.get_contributions_by_model(model_id)
    else:
        contributions = await store.get_contributions_by_status(status)
    return [ContributionResponse.model_validate(c) for c in contributions]


@router.get("/user", response_model=List[ContributionResponse])
async def list_my_contributions(
    user: User = Depends(get_current_user),
    store: MemoryStore = Depends(get_store),
):
    contributions = await store.get_contributions_by_user(user.id)
    return [ContributionResponse.model_validate(c) for c in contributions]


@router.post("", response_model=ContributionResponse, status_code=201)
async def submit_contribution(
    submission: ContributionCreate,
    user: User = Depends(get_current_user),
    store: MemoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
):
    """
    Submit a pending contribution toward a model.

    modelId defaults to the configured demo model. Records a
    submitted_contribution activity and notifies every client.
    """
    model_id = submission.model_id
    if model_id is None:
        model_id = settings.default_model_id
    if not await store.get_model(model_id):
        raise HTTPException(status_code=404, detail="Model not found")

    contribution = await store.create_contribution(
        user_id=user.id,
        model_id=model_id,
        type=submission.type,
        description=submission.description,
        code=submission.code,
        data_cid=submission.data_cid,
        code_cid=submission.code_cid,
    )
    activity = await store.create_activity(
        model_id=model_id,
        user_id=user.id,
        action=ActivityAction.SUBMITTED_CONTRIBUTION,
        description=f"{user.username} submitted a {submission.type.value} contribution",
        metadata={'contributionId': contribution.id},
        related_cid=submission.code_cid or submission.data_cid,
    )

    await broadcaster.broadcast_contribution_update(contribution)
    await broadcaster.broadcast_new_activity(activity)

    logger.info(f"User {user.id} submitted contribution {contribution.id} for model {model_id}")
    return ContributionResponse.model_validate(contribution)


@router.post("/{contribution_id}/apply", response_model=ApplyResult)
async def apply_contribution(
    contribution_id: int,
    user: User = Depends(get_current_user),
    engine: ContributionEngine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Accept a pending contribution and apply it to its model.

    Returns:
        success, improvement, newAccuracy, reward
    """
    try:
        outcome = await engine.apply_contribution(contribution_id)
    except LifecycleError as e:
        logger.info(f"Apply of contribution {contribution_id} by user {user.id} failed: {e}")
        raise lifecycle_http_error(e)

    await broadcaster.broadcast_contribution_update(outcome.contribution)
    await broadcaster.broadcast_model_update(outcome.model.id)
    await broadcaster.broadcast_new_activity(outcome.activity)
    await broadcaster.notify_user_token_update(outcome.contribution.user_id)

    return ApplyResult.model_validate(outcome)


@router.post("/{contribution_id}/reject", response_model=ContributionResponse)
async def reject_contribution(
    contribution_id: int,
    user: User = Depends(get_current_user),
    engine: ContributionEngine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        outcome = await engine.reject_contribution(contribution_id)
    except LifecycleError as e:
        logger.info(f"Reject of contribution {contribution_id} by user {user.id} failed: {e}")
        raise lifecycle_http_error(e)

    await broadcaster.broadcast_contribution_update(outcome.contribution)
    await broadcaster.broadcast_new_activity(outcome.activity)

    return ContributionResponse.model_validate(outcome.contribution)
