"""
Pydantic models for models, contributions, activities and stats
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from models.domain import ActivityAction, ContributionStatus, ContributionType
from .base import CamelModel


class ModelResponse(CamelModel):
    """Full model snapshot"""
    id: int
    name: str
    description: str
    architecture: str
    code: str
    code_cid: Optional[str] = None
    weights_cid: Optional[str] = None
    current_accuracy: str
    previous_accuracy: Optional[str] = None
    parameters: str
    last_updated: datetime


class ContributionCreate(CamelModel):
    """Request model for submitting a contribution"""
    type: ContributionType
    description: str = Field(min_length=10)
    model_id: Optional[int] = None  # defaults to the configured model
    code: Optional[str] = None
    data_cid: Optional[str] = None
    code_cid: Optional[str] = None


class ContributionResponse(CamelModel):
    id: int
    user_id: int
    model_id: int
    type: ContributionType
    description: str
    code: Optional[str] = None
    data_cid: Optional[str] = None
    code_cid: Optional[str] = None
    status: ContributionStatus
    timestamp: datetime
    reward: Optional[int] = None


class ActivityResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    model_id: int
    action: ActivityAction
    description: str
    timestamp: datetime
    metadata: Dict[str, Any] = {}
    related_cid: Optional[str] = None


class StatsSnapshot(CamelModel):
    """Aggregate counts pushed to every client"""
    active_models: int
    compute_contributors: int
    pending_contributions: int
    accepted_contributions: int


class StatsResponse(StatsSnapshot):
    """GET /api/stats - snapshot plus the caller's own contribution count"""
    user_contributions: int = 0
    total_contributions: int = 0


class ApplyResult(CamelModel):
    """
    Outcome of applying a contribution or running a compute step.

    Failed compute steps (model already training) carry only a message.
    """
    success: bool
    improvement: Optional[str] = None
    new_accuracy: Optional[str] = None
    reward: Optional[int] = None
    message: Optional[str] = None


class ComputeContributeRequest(CamelModel):
    model_id: Optional[int] = None
