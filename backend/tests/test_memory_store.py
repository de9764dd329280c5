"""
Entity Store Tests
==================

Key invariants tested:
1. Ids are assigned per type, start at 1 and increase
2. Updates replace records; earlier snapshots keep their old values
3. reward is null exactly while a contribution is pending
4. Accepting with a reward credits the owner in the same step
5. Stats come from maintained counters and track every transition
6. Activities come back newest first
"""
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from models.domain import ActivityAction, ContributionStatus, ContributionType, IpfsContentType
from repositories import MemoryStore


async def _make_user(store: MemoryStore, username: str = "alice"):
    return await store.create_user(username, "hash")


async def _make_contribution(store: MemoryStore, user_id: int, model_id: int = 1):
    return await store.create_contribution(
        user_id=user_id,
        model_id=model_id,
        type=ContributionType.DATA,
        description="More handwritten samples",
    )


# ============================================================================
# TEST: SEED AND IDS
# ============================================================================

class TestSeedAndIds:

    @pytest.mark.asyncio
    async def test_seeded_model(self, store):
        model = await store.get_model(1)
        assert model.name == "MNIST Classifier"
        assert model.current_accuracy == "96.8%"
        assert model.previous_accuracy == "94.4%"
        assert model.parameters == "1.28M"
        assert "MNISTClassifier" in model.code

    @pytest.mark.asyncio
    async def test_unseeded_store_is_empty(self):
        store = MemoryStore(seed=False)
        assert await store.get_all_models() == []
        assert (await store.get_stats()).active_models == 0

    @pytest.mark.asyncio
    async def test_ids_are_per_type_and_monotonic(self, store):
        alice = await _make_user(store, "alice")
        bob = await _make_user(store, "bob")
        first = await _make_contribution(store, alice.id)
        second = await _make_contribution(store, bob.id)

        assert (alice.id, bob.id) == (1, 2)
        assert (first.id, second.id) == (1, 2)

        model = await store.create_model(
            name="CIFAR", description="d", architecture="ResNet",
            code="", current_accuracy="80.0%", parameters="11M",
        )
        assert model.id == 2

    @pytest.mark.asyncio
    async def test_lookups_miss_with_none(self, store):
        assert await store.get_user(99) is None
        assert await store.get_model(99) is None
        assert await store.get_contribution(99) is None
        assert await store.update_model(99, name="x") is None
        assert await store.update_contribution_status(99, "accepted", 5) is None


# ============================================================================
# TEST: USERS
# ============================================================================

class TestUsers:

    @pytest.mark.asyncio
    async def test_new_user_defaults(self, store):
        user = await _make_user(store)
        assert user.tokens == 0
        assert user.compute_provider is False
        assert await store.get_user_by_username("alice") == user

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, store):
        await _make_user(store, "alice")
        with pytest.raises(ValueError):
            await _make_user(store, "alice")

    @pytest.mark.asyncio
    async def test_add_tokens_replaces_record(self, store):
        user = await _make_user(store)
        updated = await store.add_user_tokens(user.id, 7)

        assert updated.tokens == 7
        assert user.tokens == 0  # old snapshot untouched
        assert (await store.get_user(user.id)).tokens == 7

    @pytest.mark.asyncio
    async def test_negative_tokens_rejected(self, store):
        user = await _make_user(store)
        with pytest.raises(ValueError):
            await store.add_user_tokens(user.id, -1)

    @pytest.mark.asyncio
    async def test_compute_provider_index(self, store):
        user = await _make_user(store)
        await store.set_compute_provider(user.id, True)
        await store.set_compute_provider(user.id, True)
        assert (await store.get_stats()).compute_contributors == 1

        await store.set_compute_provider(user.id, False)
        assert (await store.get_stats()).compute_contributors == 0


# ============================================================================
# TEST: MODELS
# ============================================================================

class TestModels:

    @pytest.mark.asyncio
    async def test_update_refreshes_last_updated(self, store):
        before = await store.get_model(1)
        updated = await store.update_model(1, current_accuracy="97.0%")

        assert updated.current_accuracy == "97.0%"
        assert updated.last_updated >= before.last_updated
        assert before.current_accuracy == "96.8%"


# ============================================================================
# TEST: CONTRIBUTION STATUS / REWARD INVARIANT
# ============================================================================

class TestContributionStatus:

    @pytest.mark.asyncio
    async def test_new_contribution_is_pending_without_reward(self, store):
        user = await _make_user(store)
        contribution = await _make_contribution(store, user.id)

        assert contribution.status is ContributionStatus.PENDING
        assert contribution.reward is None

    @pytest.mark.asyncio
    async def test_accept_credits_owner(self, store):
        user = await _make_user(store)
        contribution = await _make_contribution(store, user.id)

        accepted = await store.update_contribution_status(
            contribution.id, ContributionStatus.ACCEPTED, 12
        )

        assert accepted.status is ContributionStatus.ACCEPTED
        assert accepted.reward == 12
        assert (await store.get_user(user.id)).tokens == 12

    @pytest.mark.asyncio
    async def test_reject_with_zero_reward_credits_nothing(self, store):
        user = await _make_user(store)
        contribution = await _make_contribution(store, user.id)

        rejected = await store.update_contribution_status(
            contribution.id, ContributionStatus.REJECTED, 0
        )

        assert rejected.reward == 0
        assert (await store.get_user(user.id)).tokens == 0

    @pytest.mark.asyncio
    async def test_terminal_status_requires_reward(self, store):
        user = await _make_user(store)
        contribution = await _make_contribution(store, user.id)

        with pytest.raises(ValueError):
            await store.update_contribution_status(contribution.id, ContributionStatus.ACCEPTED)

        # nothing changed
        assert (await store.get_contribution(contribution.id)).is_pending
        assert (await store.get_stats()).pending_contributions == 1

    @pytest.mark.asyncio
    async def test_negative_reward_rejected(self, store):
        user = await _make_user(store)
        contribution = await _make_contribution(store, user.id)

        with pytest.raises(ValueError):
            await store.update_contribution_status(contribution.id, ContributionStatus.ACCEPTED, -3)
        assert (await store.get_contribution(contribution.id)).is_pending

    @pytest.mark.asyncio
    async def test_accepting_for_unknown_owner_still_records_reward(self, store):
        contribution = await _make_contribution(store, user_id=404)
        accepted = await store.update_contribution_status(
            contribution.id, ContributionStatus.ACCEPTED, 5
        )
        assert accepted.reward == 5

    @pytest.mark.asyncio
    async def test_filters(self, store):
        alice = await _make_user(store, "alice")
        bob = await _make_user(store, "bob")
        a = await _make_contribution(store, alice.id)
        await _make_contribution(store, bob.id, model_id=2)
        await store.update_contribution_status(a.id, "accepted", 5)

        assert [c.id for c in await store.get_contributions_by_user(alice.id)] == [a.id]
        assert len(await store.get_contributions_by_model(1)) == 1
        assert [c.id for c in await store.get_contributions_by_status("accepted")] == [a.id]
        assert len(await store.get_contributions_by_status(ContributionStatus.PENDING)) == 1


# ============================================================================
# TEST: STATS
# ============================================================================

class TestStats:

    @pytest.mark.asyncio
    async def test_counts_follow_transitions(self, store):
        user = await _make_user(store)
        first = await _make_contribution(store, user.id)
        second = await _make_contribution(store, user.id)
        await _make_contribution(store, user.id)

        await store.update_contribution_status(first.id, "accepted", 5)
        await store.update_contribution_status(second.id, "rejected", 0)

        stats = await store.get_stats()
        assert stats.active_models == 1
        assert stats.pending_contributions == 1
        assert stats.accepted_contributions == 1
        assert stats.rejected_contributions == 1


# ============================================================================
# TEST: ACTIVITIES
# ============================================================================

class TestActivities:

    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, store):
        for n in range(5):
            await store.create_activity(
                model_id=1,
                action=ActivityAction.SUBMITTED_CONTRIBUTION,
                description=f"activity {n}",
            )
        await store.create_activity(model_id=2, action="created_dataset", description="other model")

        activities = await store.get_activities(1)
        assert [a.description for a in activities] == [f"activity {n}" for n in (4, 3, 2, 1, 0)]

        limited = await store.get_activities(1, limit=2)
        assert [a.description for a in limited] == ["activity 4", "activity 3"]

    @pytest.mark.asyncio
    async def test_ordering_uses_timestamp_not_insertion(self, store):
        old = await store.create_activity(model_id=1, action="created_dataset", description="old")
        new = await store.create_activity(model_id=1, action="created_dataset", description="new")

        # Backdate the newer record past the older one
        store._activities[new.id] = replace(new, timestamp=old.timestamp - timedelta(seconds=5))

        assert [a.description for a in await store.get_activities(1)] == ["old", "new"]

    @pytest.mark.asyncio
    async def test_metadata_is_copied(self, store):
        metadata = {"reward": 5}
        activity = await store.create_activity(
            model_id=1, action="contribution_accepted", description="d", metadata=metadata
        )
        metadata["reward"] = 99
        assert activity.metadata == {"reward": 5}
        assert activity.timestamp <= datetime.now(timezone.utc)


# ============================================================================
# TEST: IPFS RECORDS AND DATASETS
# ============================================================================

class TestStorageRecords:

    @pytest.mark.asyncio
    async def test_duplicate_cid_returns_existing_record(self, store):
        first = await store.create_ipfs_record("QmA", IpfsContentType.DATA, user_id=1)
        second = await store.create_ipfs_record("QmA", "code", user_id=2)

        assert second.id == first.id
        assert second.content_type is IpfsContentType.DATA

    @pytest.mark.asyncio
    async def test_pin_status(self, store):
        await store.create_ipfs_record("QmA", "model", user_id=1)
        pinned = await store.update_ipfs_pin_status("QmA", True)

        assert pinned.pinned is True
        assert (await store.get_ipfs_record_by_cid("QmA")).pinned is True
        assert await store.update_ipfs_pin_status("QmMissing", True) is None

    @pytest.mark.asyncio
    async def test_datasets_by_user(self, store):
        dataset = await store.create_dataset(
            name="digits", description="extra digits", data_cid="QmD", format="csv", user_id=3
        )
        assert await store.get_dataset(dataset.id) == dataset
        assert await store.get_datasets_by_user(3) == [dataset]
        assert await store.get_datasets_by_user(4) == []
