"""
Compute API - donate simulated training steps

POST /api/compute/register   - Become a compute provider
POST /api/compute/contribute - Run one training step on a model
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from config import Settings
from middleware.auth import get_current_user
from models.api.records import ApplyResult, ComputeContributeRequest
from models.domain import ActivityAction, User
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.contribution_engine import ContributionEngine
from services.errors import LifecycleError, ModelNotFoundError, UserNotFoundError
from .dependencies import get_app_settings, get_broadcaster, get_engine, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/compute", tags=["compute"])


async def register_compute_provider(
    store: MemoryStore,
    broadcaster: Broadcaster,
    user_id: int,
    model_id: int,
) -> Optional[User]:
    """
    Flag a user as a compute provider and tell every client.

    Shared by the HTTP endpoint and the REGISTER_COMPUTE socket message.
    Registering twice is a no-op apart from the stats push.

    Returns:
        Updated user or None if unknown
    """
    user = await store.get_user(user_id)
    if not user:
        return None

    if not user.compute_provider:
        user = await store.set_compute_provider(user_id, True)
        activity = await store.create_activity(
            model_id=model_id,
            user_id=user_id,
            action=ActivityAction.REGISTERED_COMPUTE_PROVIDER,
            description=f"{user.username} registered as a compute provider",
        )
        await broadcaster.broadcast_new_activity(activity)
        logger.info(f"User {user_id} registered as compute provider")

    await broadcaster.broadcast_stats()
    return user


@router.post("/register")
async def register(
    user: User = Depends(get_current_user),
    store: MemoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
):
    await register_compute_provider(store, broadcaster, user.id, settings.default_model_id)
    return {"success": True, "computeProvider": True}


@router.post("/contribute", response_model=ApplyResult)
async def contribute(
    request_body: Optional[ComputeContributeRequest] = None,
    user: User = Depends(get_current_user),
    engine: ContributionEngine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
):
    """
    Run one training step for the caller.

    A step requested while another is running returns success=false with
    a message instead of waiting.
    """
    if not user.compute_provider:
        raise HTTPException(status_code=403, detail="User is not registered as a compute provider")

    model_id = request_body.model_id if request_body else None
    if model_id is None:
        model_id = settings.default_model_id

    try:
        outcome = await engine.train_step(user.id, model_id)
    except ModelNotFoundError:
        raise HTTPException(status_code=404, detail="Model not found")
    except UserNotFoundError as e:
        # The session resolved to this user moments ago
        logger.error(f"Compute step for vanished user: {e}")
        raise HTTPException(status_code=500, detail="User record missing")
    except LifecycleError as e:
        logger.error(f"Compute step failed for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if outcome.success:
        await broadcaster.broadcast_model_update(model_id)
        await broadcaster.broadcast_new_activity(outcome.activity)
        await broadcaster.notify_user_token_update(user.id)

    return ApplyResult.model_validate(outcome)
