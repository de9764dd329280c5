"""
Domain Models - Storage-agnostic data structures

These models represent the core domain entities independent of storage layer.
Services operate on these models; the API layer renders them through the
pydantic schemas in models.api.

Architecture:
- Domain models are pure Python objects (dataclasses)
- Storage details are hidden behind the entity store in repositories
- Business logic (lifecycle, rewards) operates on these models
"""

from .user import User
from .model import Model, MAX_ACCURACY, parse_accuracy, format_accuracy
from .contribution import Contribution, ContributionStatus, ContributionType
from .activity import Activity, ActivityAction
from .storage import IpfsRecord, IpfsContentType, Dataset

__all__ = [
    # Core entities
    'User',
    'Model',
    'Contribution',
    'Activity',

    # Enums
    'ContributionStatus',
    'ContributionType',
    'ActivityAction',
    'IpfsContentType',

    # IPFS-backed records
    'IpfsRecord',
    'Dataset',

    # Accuracy helpers
    'MAX_ACCURACY',
    'parse_accuracy',
    'format_accuracy',
]
