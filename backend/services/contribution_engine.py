"""
ContributionEngine - contribution lifecycle and simulated training

State machine:
    pending -> accepted   (apply_contribution; reward 5-20 tokens)
    pending -> rejected   (reject_contribution; reward 0)
Both end states are terminal.

Compute steps run one at a time system-wide. A step requested while another
is in flight fails immediately instead of queueing.

Accuracy changes are random draws, not measurements:
- applied contribution: +[0, 2.5) points
- compute step: +[0, 0.3) points
and the result is always capped at 99.9%.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

from models.domain import (
    Activity,
    ActivityAction,
    Contribution,
    ContributionStatus,
    ContributionType,
    MAX_ACCURACY,
    Model,
    format_accuracy,
)
from repositories import MemoryStore
from services.errors import (
    ContributionAlreadyProcessedError,
    ContributionNotFoundError,
    ModelNotFoundError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """
    Result of an apply or a compute step.

    The records written by the step ride along so callers can broadcast
    them without re-reading the store.
    """
    success: bool
    improvement: Optional[str] = None
    new_accuracy: Optional[str] = None
    reward: Optional[int] = None
    message: Optional[str] = None
    model: Optional[Model] = None
    contribution: Optional[Contribution] = None
    activity: Optional[Activity] = None


class ContributionEngine:
    """
    Applies contributions and compute steps to models.

    Usage:
        engine = ContributionEngine(store)
        result = await engine.apply_contribution(contribution_id)
        result = await engine.train_step(user_id, model_id)
    """

    CONTRIBUTION_MAX_IMPROVEMENT = 2.5
    CONTRIBUTION_REWARD_RANGE = (5, 20)

    COMPUTE_MAX_IMPROVEMENT = 0.3
    COMPUTE_REWARD_RANGE = (1, 3)

    def __init__(
        self,
        store: MemoryStore,
        step_delay: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.step_delay = step_delay
        self.rng = rng or random.Random()
        self._training_lock = asyncio.Lock()

    @property
    def is_training(self) -> bool:
        return self._training_lock.locked()

    @staticmethod
    def _next_accuracy(current: float, improvement: float) -> float:
        return min(MAX_ACCURACY, current + improvement)

    # =========================================================================
    # CONTRIBUTIONS
    # =========================================================================

    async def apply_contribution(self, contribution_id: int) -> StepOutcome:
        """
        Accept a pending contribution and apply it to its model.

        Args:
            contribution_id: Contribution to apply

        Returns:
            StepOutcome with improvement, new accuracy, reward and the written records

        Raises:
            ContributionNotFoundError, ModelNotFoundError
            ContributionAlreadyProcessedError if not pending
        """
        contribution = await self.store.get_contribution(contribution_id)
        if not contribution:
            raise ContributionNotFoundError(contribution_id)
        if not contribution.is_pending:
            raise ContributionAlreadyProcessedError(contribution_id, contribution.status.value)

        model = await self.store.get_model(contribution.model_id)
        if not model:
            raise ModelNotFoundError(contribution.model_id)

        improvement = self.rng.random() * self.CONTRIBUTION_MAX_IMPROVEMENT
        new_accuracy = format_accuracy(self._next_accuracy(model.accuracy, improvement))
        reward = self.rng.randint(*self.CONTRIBUTION_REWARD_RANGE)

        updates = {
            'previous_accuracy': model.current_accuracy,
            'current_accuracy': new_accuracy,
        }
        if contribution.type is ContributionType.CODE and contribution.code:
            updates['code'] = contribution.code

        updated_model = await self.store.update_model(model.id, **updates)
        accepted = await self.store.update_contribution_status(
            contribution_id, ContributionStatus.ACCEPTED, reward
        )

        improvement_label = format_accuracy(improvement)
        activity = await self.store.create_activity(
            model_id=contribution.model_id,
            user_id=contribution.user_id,
            action=ActivityAction.CONTRIBUTION_ACCEPTED,
            description=(
                f"{contribution.type.value} contribution accepted with "
                f"{improvement_label} improvement"
            ),
            metadata={
                'contributionId': contribution.id,
                'improvement': improvement_label,
                'newAccuracy': new_accuracy,
                'reward': reward,
            },
        )

        logger.info(
            f"Applied contribution {contribution_id} to model {model.id}: "
            f"{model.current_accuracy} -> {new_accuracy}, reward {reward}"
        )
        return StepOutcome(
            success=True,
            improvement=improvement_label,
            new_accuracy=new_accuracy,
            reward=reward,
            model=updated_model,
            contribution=accepted,
            activity=activity,
        )

    async def reject_contribution(self, contribution_id: int) -> StepOutcome:
        """
        Reject a pending contribution (reward 0, no model change).

        Returns:
            StepOutcome carrying the rejected contribution and its activity
        """
        contribution = await self.store.get_contribution(contribution_id)
        if not contribution:
            raise ContributionNotFoundError(contribution_id)
        if not contribution.is_pending:
            raise ContributionAlreadyProcessedError(contribution_id, contribution.status.value)

        rejected = await self.store.update_contribution_status(
            contribution_id, ContributionStatus.REJECTED, 0
        )
        activity = await self.store.create_activity(
            model_id=contribution.model_id,
            user_id=contribution.user_id,
            action=ActivityAction.CONTRIBUTION_REJECTED,
            description=f"{contribution.type.value} contribution rejected",
            metadata={'contributionId': contribution.id},
        )

        logger.info(f"Rejected contribution {contribution_id}")
        return StepOutcome(success=True, reward=0, contribution=rejected, activity=activity)

    # =========================================================================
    # COMPUTE
    # =========================================================================

    async def train_step(self, user_id: int, model_id: int) -> StepOutcome:
        """
        Run one simulated training step on behalf of a compute provider.

        Fails fast with success=False if another step is running. The
        training slot is released on every exit path, including errors.

        Raises:
            UserNotFoundError, ModelNotFoundError
        """
        # locked() and acquiring a free lock happen with no suspension between
        if self._training_lock.locked():
            logger.info(f"Compute step from user {user_id} refused: model already training")
            return StepOutcome(success=False, message="Model is already training")

        async with self._training_lock:
            if not await self.store.get_user(user_id):
                raise UserNotFoundError(user_id)
            if not await self.store.get_model(model_id):
                raise ModelNotFoundError(model_id)

            await asyncio.sleep(self.step_delay)

            # Re-read after the delay; the model may have changed meanwhile
            model = await self.store.get_model(model_id)
            improvement = self.rng.random() * self.COMPUTE_MAX_IMPROVEMENT
            new_accuracy = format_accuracy(self._next_accuracy(model.accuracy, improvement))
            reward = self.rng.randint(*self.COMPUTE_REWARD_RANGE)

            updated_model = await self.store.update_model(
                model_id,
                previous_accuracy=model.current_accuracy,
                current_accuracy=new_accuracy,
            )
            await self.store.add_user_tokens(user_id, reward)

            improvement_label = format_accuracy(improvement, decimals=2)
            activity = await self.store.create_activity(
                model_id=model_id,
                user_id=user_id,
                action=ActivityAction.COMPUTE_CONTRIBUTION,
                description=(
                    f"Compute resources contributed resulting in "
                    f"{improvement_label} improvement"
                ),
                metadata={
                    'improvement': improvement_label,
                    'newAccuracy': new_accuracy,
                    'reward': reward,
                },
            )

        logger.info(f"Compute step by user {user_id} on model {model_id}: {new_accuracy}, reward {reward}")
        return StepOutcome(
            success=True,
            improvement=improvement_label,
            new_accuracy=new_accuracy,
            reward=reward,
            model=updated_model,
            activity=activity,
        )
