"""
Activity domain model - append-only feed entries
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from enum import Enum


class ActivityAction(str, Enum):
    """Closed set of activity tags"""
    SUBMITTED_CONTRIBUTION = "submitted_contribution"
    CONTRIBUTION_ACCEPTED = "contribution_accepted"
    CONTRIBUTION_REJECTED = "contribution_rejected"
    COMPUTE_CONTRIBUTION = "compute_contribution"
    REGISTERED_COMPUTE_PROVIDER = "registered_compute_provider"
    UPLOADED_TO_IPFS = "uploaded_to_ipfs"
    CREATED_DATASET = "created_dataset"


@dataclass(frozen=True)
class Activity:
    """
    Activity domain model

    Immutable once created. user_id of None means system-generated.
    """
    id: int
    model_id: int
    action: ActivityAction
    description: str

    user_id: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)
    related_cid: Optional[str] = None
