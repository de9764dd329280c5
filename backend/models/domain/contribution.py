"""
Contribution domain model
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from enum import Enum


class ContributionType(str, Enum):
    """Kinds of work a user can propose"""
    CODE = "code"
    COMPUTE = "compute"
    DATA = "data"
    HYPERPARAMETERS = "hyperparameters"


class ContributionStatus(str, Enum):
    """
    Lifecycle states.

    PENDING -> ACCEPTED | REJECTED; both terminal.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ContributionStatus.PENDING


@dataclass
class Contribution:
    """
    Contribution domain model - a unit of proposed work

    Invariant: reward is set if and only if status is not PENDING.
    """
    id: int
    user_id: int
    model_id: int
    type: ContributionType
    description: str

    code: Optional[str] = None
    data_cid: Optional[str] = None
    code_cid: Optional[str] = None

    status: ContributionStatus = ContributionStatus.PENDING
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reward: Optional[int] = None

    @property
    def is_pending(self) -> bool:
        return self.status is ContributionStatus.PENDING
