"""
Broadcaster Tests
=================

Key invariants tested:
1. A new connection receives a STATS_UPDATE alone, reflecting current counts
2. broadcast reaches every connection with identical text
3. send_to_user reaches only connections bound to that user
4. A failed send drops that connection without affecting others
5. Messages arrive in emission order
6. A stalled client never holds up other connections or the publisher
"""
import asyncio

import pytest

from conftest import FakeWebSocket, StalledWebSocket
from models.domain import ActivityAction, ContributionStatus
from services.broadcaster import Broadcaster


class TestConnectionLifecycle:

    @pytest.mark.asyncio
    async def test_connect_sends_stats_snapshot(self, broadcaster):
        ws = FakeWebSocket()
        await broadcaster.connect(ws)
        await broadcaster.drain()

        assert ws.accepted is True
        assert ws.sent == [{
            "type": "STATS_UPDATE",
            "data": {
                "activeModels": 1,
                "computeContributors": 0,
                "pendingContributions": 0,
                "acceptedContributions": 0,
            },
        }]
        assert broadcaster.connection_count == 1

    @pytest.mark.asyncio
    async def test_snapshot_only_goes_to_new_connection(self, broadcaster):
        first = FakeWebSocket()
        second = FakeWebSocket()
        await broadcaster.connect(first)
        await broadcaster.connect(second)
        await broadcaster.drain()

        assert first.types() == ["STATS_UPDATE"]
        assert second.types() == ["STATS_UPDATE"]

    @pytest.mark.asyncio
    async def test_late_joiner_sees_post_acceptance_counts(self, store, broadcaster):
        user = await store.create_user("erin", "hash")
        contribution = await store.create_contribution(
            user_id=user.id, model_id=1, type="code", description="Improves conv layer init"
        )
        await store.update_contribution_status(contribution.id, ContributionStatus.ACCEPTED, 9)

        late = FakeWebSocket()
        await broadcaster.connect(late)
        await broadcaster.drain()

        assert late.sent[0]["data"]["acceptedContributions"] == 1
        assert late.sent[0]["data"]["pendingContributions"] == 0

    @pytest.mark.asyncio
    async def test_disconnect_and_authenticate(self, broadcaster):
        ws = FakeWebSocket()
        await broadcaster.connect(ws)
        broadcaster.authenticate(ws, 5)
        assert broadcaster.user_for(ws) == 5

        broadcaster.disconnect(ws)
        assert broadcaster.connection_count == 0

        # authenticating a closed connection is ignored
        broadcaster.authenticate(ws, 5)
        assert broadcaster.user_for(ws) is None


class TestDelivery:

    @pytest.mark.asyncio
    async def test_broadcast_reaches_everyone(self, broadcaster):
        sockets = [FakeWebSocket() for _ in range(3)]
        for ws in sockets:
            await broadcaster.connect(ws)

        await broadcaster.broadcast_model_update(1)
        await broadcaster.drain()

        for ws in sockets:
            assert ws.types() == ["STATS_UPDATE", "MODEL_UPDATE"]
            assert ws.sent[-1]["data"]["currentAccuracy"] == "96.8%"
            assert ws.sent[-1]["data"]["id"] == 1

    @pytest.mark.asyncio
    async def test_failed_send_drops_only_that_connection(self, broadcaster):
        healthy = FakeWebSocket()
        await broadcaster.connect(healthy)
        broken = FakeWebSocket()
        await broadcaster.connect(broken)
        broken.fail_sends = True

        await broadcaster.broadcast_stats()
        await broadcaster.drain()

        assert broadcaster.connection_count == 1
        assert healthy.types() == ["STATS_UPDATE", "STATS_UPDATE"]

    @pytest.mark.asyncio
    async def test_token_update_targets_user(self, store, broadcaster):
        user = await store.create_user("frank", "hash")
        await store.add_user_tokens(user.id, 4)

        tab_one, tab_two, stranger, anonymous = (FakeWebSocket() for _ in range(4))
        await broadcaster.connect(tab_one, user.id)
        await broadcaster.connect(tab_two, user.id)
        await broadcaster.connect(stranger, 999)
        await broadcaster.connect(anonymous)

        await broadcaster.notify_user_token_update(user.id)
        await broadcaster.drain()

        expected = {"type": "USER_TOKENS_UPDATE", "userId": user.id, "tokens": 4}
        assert tab_one.sent[-1] == expected
        assert tab_two.sent[-1] == expected
        assert stranger.types() == ["STATS_UPDATE"]
        assert anonymous.types() == ["STATS_UPDATE"]

    @pytest.mark.asyncio
    async def test_contribution_update_followed_by_stats(self, store, broadcaster):
        ws = FakeWebSocket()
        await broadcaster.connect(ws)
        contribution = await store.create_contribution(
            user_id=1, model_id=1, type="data", description="Extra handwritten digits"
        )
        activity = await store.create_activity(
            model_id=1, action=ActivityAction.SUBMITTED_CONTRIBUTION, description="submitted"
        )

        await broadcaster.broadcast_contribution_update(contribution)
        await broadcaster.broadcast_new_activity(activity)
        await broadcaster.drain()

        assert ws.types() == [
            "STATS_UPDATE", "CONTRIBUTION_UPDATE", "STATS_UPDATE", "ACTIVITY_UPDATE",
        ]
        assert ws.sent[1]["data"]["status"] == "pending"
        assert ws.sent[1]["data"]["reward"] is None
        assert ws.sent[2]["data"]["pendingContributions"] == 1
        assert ws.sent[3]["data"]["action"] == "submitted_contribution"


class TestSlowClients:

    @pytest.mark.asyncio
    async def test_stalled_client_does_not_block_others(self, store):
        broadcaster = Broadcaster(store, send_timeout=0.05)
        try:
            user = await store.create_user("grace", "hash")
            stalled = StalledWebSocket()
            healthy = FakeWebSocket()
            await broadcaster.connect(stalled, user.id)
            await broadcaster.connect(healthy, user.id)
            contribution = await store.create_contribution(
                user_id=user.id, model_id=1, type="code", description="Improves conv layer init"
            )

            await asyncio.wait_for(broadcaster.broadcast_contribution_update(contribution), 1)
            await asyncio.wait_for(broadcaster.notify_user_token_update(user.id), 1)
            late = FakeWebSocket()
            await asyncio.wait_for(broadcaster.connect(late), 1)
            await asyncio.wait_for(broadcaster.drain(), 1)

            assert late.types() == ["STATS_UPDATE"]
            assert late.sent[0]["data"]["pendingContributions"] == 1
            assert healthy.types() == [
                "STATS_UPDATE", "CONTRIBUTION_UPDATE", "STATS_UPDATE", "USER_TOKENS_UPDATE",
            ]
            assert broadcaster.user_for(stalled) is None
            assert broadcaster.connection_count == 2
        finally:
            await broadcaster.close()

    @pytest.mark.asyncio
    async def test_full_queue_drops_connection(self, store):
        broadcaster = Broadcaster(store, send_timeout=60, queue_size=2)
        try:
            stalled = StalledWebSocket()
            await broadcaster.connect(stalled)

            for _ in range(5):
                await asyncio.wait_for(broadcaster.broadcast_stats(), 1)

            assert broadcaster.connection_count == 0
            assert broadcaster.user_for(stalled) is None
            assert stalled.sent == []
        finally:
            await broadcaster.close()
