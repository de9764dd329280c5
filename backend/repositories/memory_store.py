"""
Entity Store - in-memory storage for all platform entities

Storage: process memory (nothing survives a restart)

The store is the only owner of entity instances. Records are replaced, not
mutated, on update, so a record handed to a caller is a snapshot of the
state at read time. Ids come from per-type counters and are never reused.

Every method is async so a persistent backend can stand in without changing
callers, but no method awaits internally: each mutation completes in one
step of the event loop and can't interleave with another.
"""
import itertools
import logging
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Union

from models.domain import (
    Activity,
    ActivityAction,
    Contribution,
    ContributionStatus,
    ContributionType,
    Dataset,
    IpfsContentType,
    IpfsRecord,
    Model,
    User,
)

logger = logging.getLogger(__name__)


SEED_MODEL_CODE = """import torch
import torch.nn as nn
import torch.nn.functional as F

class MNISTClassifier(nn.Module):
    def __init__(self):
        super(MNISTClassifier, self).__init__()
        self.conv1 = nn.Conv2d(1, 32, 3, 1)
        self.conv2 = nn.Conv2d(32, 64, 3, 1)
        self.dropout1 = nn.Dropout2d(0.25)
        self.dropout2 = nn.Dropout2d(0.5)
        self.fc1 = nn.Linear(9216, 128)
        self.fc2 = nn.Linear(128, 10)

    def forward(self, x):
        x = self.conv1(x)
        x = F.relu(x)
        x = self.conv2(x)
        x = F.relu(x)
        x = F.max_pool2d(x, 2)
        x = self.dropout1(x)
        x = torch.flatten(x, 1)
        x = self.fc1(x)
        x = F.relu(x)
        x = self.dropout2(x)
        x = self.fc2(x)
        output = F.log_softmax(x, dim=1)
        return output
"""


@dataclass(frozen=True)
class StoreStats:
    """Aggregate counts read from the maintained indexes"""
    active_models: int
    compute_contributors: int
    pending_contributions: int
    accepted_contributions: int
    rejected_contributions: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """
    In-memory entity store

    Holds users, models, contributions, activities, IPFS records and
    datasets. Lookups that miss return None (or an empty list); they never
    raise.
    """

    def __init__(self, seed: bool = True):
        self._users: Dict[int, User] = {}
        self._models: Dict[int, Model] = {}
        self._contributions: Dict[int, Contribution] = {}
        self._activities: Dict[int, Activity] = {}
        self._ipfs_records: Dict[int, IpfsRecord] = {}
        self._datasets: Dict[int, Dataset] = {}

        self._ids = {
            name: itertools.count(1)
            for name in ('user', 'model', 'contribution', 'activity', 'ipfs', 'dataset')
        }

        # Secondary indexes, kept current by every mutation
        self._user_ids_by_name: Dict[str, int] = {}
        self._compute_providers: Set[int] = set()
        self._status_counts: Counter = Counter()
        self._ipfs_ids_by_cid: Dict[str, int] = {}

        if seed:
            self._seed()

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    def _seed(self):
        """Create the initial MNIST classifier (id 1)"""
        model_id = self._next_id('model')
        self._models[model_id] = Model(
            id=model_id,
            name="MNIST Classifier",
            description="A convolutional neural network for classifying handwritten digits.",
            architecture="Convolutional Neural Network",
            code=SEED_MODEL_CODE,
            current_accuracy="96.8%",
            previous_accuracy="94.4%",
            parameters="1.28M",
        )

    # =========================================================================
    # USERS
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        user_id = self._user_ids_by_name.get(username)
        return self._users.get(user_id) if user_id is not None else None

    async def create_user(self, username: str, password_hash: str) -> User:
        """
        Create a user with zero tokens, not a compute provider.

        Raises:
            ValueError if the username is taken
        """
        if username in self._user_ids_by_name:
            raise ValueError(f"Username already exists: {username}")

        user = User(id=self._next_id('user'), username=username, password_hash=password_hash)
        self._users[user.id] = user
        self._user_ids_by_name[username] = user.id
        logger.info(f"Created user {user.id} ({username})")
        return user

    async def add_user_tokens(self, user_id: int, amount: int) -> Optional[User]:
        """
        Credit tokens to a user.

        Returns:
            Updated user or None if unknown
        """
        user = self._users.get(user_id)
        if not user:
            return None
        return self._credit(user, amount)

    def _credit(self, user: User, amount: int) -> User:
        if amount < 0:
            raise ValueError("Token rewards cannot be negative")
        updated = replace(user, tokens=user.tokens + amount)
        self._users[user.id] = updated
        return updated

    async def set_compute_provider(self, user_id: int, is_provider: bool) -> Optional[User]:
        user = self._users.get(user_id)
        if not user:
            return None

        updated = replace(user, compute_provider=is_provider)
        self._users[user_id] = updated
        if is_provider:
            self._compute_providers.add(user_id)
        else:
            self._compute_providers.discard(user_id)
        return updated

    # =========================================================================
    # MODELS
    # =========================================================================

    async def get_model(self, model_id: int) -> Optional[Model]:
        return self._models.get(model_id)

    async def get_all_models(self) -> List[Model]:
        return list(self._models.values())

    async def create_model(self, **fields) -> Model:
        fields.pop('id', None)
        fields.pop('last_updated', None)
        model = Model(id=self._next_id('model'), **fields)
        self._models[model.id] = model
        return model

    async def update_model(self, model_id: int, **fields) -> Optional[Model]:
        """
        Merge fields onto a model and refresh last_updated.

        Returns:
            Updated model or None if unknown
        """
        model = self._models.get(model_id)
        if not model:
            return None

        fields.pop('id', None)
        fields['last_updated'] = _now()
        updated = replace(model, **fields)
        self._models[model_id] = updated
        return updated

    # =========================================================================
    # CONTRIBUTIONS
    # =========================================================================

    async def get_contribution(self, contribution_id: int) -> Optional[Contribution]:
        return self._contributions.get(contribution_id)

    async def get_contributions_by_user(self, user_id: int) -> List[Contribution]:
        return [c for c in self._contributions.values() if c.user_id == user_id]

    async def get_contributions_by_model(self, model_id: int) -> List[Contribution]:
        return [c for c in self._contributions.values() if c.model_id == model_id]

    async def get_contributions_by_status(
        self,
        status: Union[ContributionStatus, str]
    ) -> List[Contribution]:
        status = ContributionStatus(status)
        return [c for c in self._contributions.values() if c.status is status]

    async def create_contribution(
        self,
        user_id: int,
        model_id: int,
        type: Union[ContributionType, str],
        description: str,
        code: Optional[str] = None,
        data_cid: Optional[str] = None,
        code_cid: Optional[str] = None,
    ) -> Contribution:
        """Create a contribution; status always starts pending with no reward"""
        contribution = Contribution(
            id=self._next_id('contribution'),
            user_id=user_id,
            model_id=model_id,
            type=ContributionType(type),
            description=description,
            code=code,
            data_cid=data_cid,
            code_cid=code_cid,
        )
        self._contributions[contribution.id] = contribution
        self._status_counts[contribution.status] += 1
        return contribution

    async def update_contribution_status(
        self,
        contribution_id: int,
        status: Union[ContributionStatus, str],
        reward: Optional[int] = None
    ) -> Optional[Contribution]:
        """
        Set status (and reward), crediting the owner when accepted.

        The status change and the token credit happen together; no reader
        can see one without the other.

        Args:
            contribution_id: Contribution to update
            status: New status
            reward: Reward to record; kept as-is when omitted

        Returns:
            Updated contribution or None if unknown

        Raises:
            ValueError if the result would break the reward/status invariant
        """
        contribution = self._contributions.get(contribution_id)
        if not contribution:
            return None

        status = ContributionStatus(status)
        new_reward = reward if reward is not None else contribution.reward
        if status.is_terminal and new_reward is None:
            raise ValueError(f"Contribution {contribution_id} cannot be {status.value} without a reward")
        if not status.is_terminal:
            new_reward = None

        owner = self._users.get(contribution.user_id)
        credit = status is ContributionStatus.ACCEPTED and reward is not None
        if credit and reward < 0:
            raise ValueError("Token rewards cannot be negative")

        updated = replace(contribution, status=status, reward=new_reward)
        self._contributions[contribution_id] = updated
        self._status_counts[contribution.status] -= 1
        self._status_counts[status] += 1

        if credit and owner:
            self._credit(owner, reward)
        elif credit:
            logger.warning(f"Contribution {contribution_id} owner {contribution.user_id} not found; reward not credited")

        return updated

    # =========================================================================
    # ACTIVITIES
    # =========================================================================

    async def get_activities(self, model_id: int, limit: Optional[int] = None) -> List[Activity]:
        """
        Activities for a model, newest first.

        Args:
            model_id: Model to filter on
            limit: Maximum number of activities (falsy = all)
        """
        activities = sorted(
            (a for a in self._activities.values() if a.model_id == model_id),
            key=lambda a: (a.timestamp, a.id),
            reverse=True,
        )
        return activities[:limit] if limit else activities

    async def create_activity(
        self,
        model_id: int,
        action: Union[ActivityAction, str],
        description: str,
        user_id: Optional[int] = None,
        metadata: Optional[dict] = None,
        related_cid: Optional[str] = None,
    ) -> Activity:
        activity = Activity(
            id=self._next_id('activity'),
            model_id=model_id,
            action=ActivityAction(action),
            description=description,
            user_id=user_id,
            metadata=dict(metadata or {}),
            related_cid=related_cid,
        )
        self._activities[activity.id] = activity
        return activity

    # =========================================================================
    # IPFS RECORDS
    # =========================================================================

    async def create_ipfs_record(
        self,
        cid: str,
        content_type: Union[IpfsContentType, str],
        user_id: Optional[int] = None,
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
        description: Optional[str] = None,
    ) -> IpfsRecord:
        """
        Record an uploaded CID.

        IPFS is content-addressed, so re-uploading identical bytes yields the
        same CID; the existing record is returned in that case.
        """
        existing_id = self._ipfs_ids_by_cid.get(cid)
        if existing_id is not None:
            return self._ipfs_records[existing_id]

        record = IpfsRecord(
            id=self._next_id('ipfs'),
            cid=cid,
            content_type=IpfsContentType(content_type),
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            description=description,
        )
        self._ipfs_records[record.id] = record
        self._ipfs_ids_by_cid[cid] = record.id
        return record

    async def get_ipfs_record_by_cid(self, cid: str) -> Optional[IpfsRecord]:
        record_id = self._ipfs_ids_by_cid.get(cid)
        return self._ipfs_records.get(record_id) if record_id is not None else None

    async def get_ipfs_records_by_user(self, user_id: int) -> List[IpfsRecord]:
        return [r for r in self._ipfs_records.values() if r.user_id == user_id]

    async def update_ipfs_pin_status(self, cid: str, pinned: bool) -> Optional[IpfsRecord]:
        record = await self.get_ipfs_record_by_cid(cid)
        if not record:
            return None
        updated = replace(record, pinned=pinned)
        self._ipfs_records[record.id] = updated
        return updated

    # =========================================================================
    # DATASETS
    # =========================================================================

    async def create_dataset(
        self,
        name: str,
        description: str,
        data_cid: str,
        format: str,
        user_id: int,
        size_bytes: Optional[int] = None,
    ) -> Dataset:
        dataset = Dataset(
            id=self._next_id('dataset'),
            name=name,
            description=description,
            data_cid=data_cid,
            format=format,
            user_id=user_id,
            size_bytes=size_bytes,
        )
        self._datasets[dataset.id] = dataset
        return dataset

    async def get_dataset(self, dataset_id: int) -> Optional[Dataset]:
        return self._datasets.get(dataset_id)

    async def get_datasets_by_user(self, user_id: int) -> List[Dataset]:
        return [d for d in self._datasets.values() if d.user_id == user_id]

    # =========================================================================
    # STATS
    # =========================================================================

    async def get_stats(self) -> StoreStats:
        """Aggregate counts from the maintained indexes (no rescans)"""
        return StoreStats(
            active_models=len(self._models),
            compute_contributors=len(self._compute_providers),
            pending_contributions=self._status_counts[ContributionStatus.PENDING],
            accepted_contributions=self._status_counts[ContributionStatus.ACCEPTED],
            rejected_contributions=self._status_counts[ContributionStatus.REJECTED],
        )
