"""
Broadcaster - pushes entity changes to every live WebSocket connection

Connections start anonymous and may be bound to a user after the session
token is verified (see api/realtime.py). Delivery is fire-and-forget:
publishing only enqueues, and each connection has its own writer task that
drains its queue in order. A connection is dropped and logged when a send
doesn't finish in time or when its queue fills up; nothing is retried.

Enqueueing never suspends, so every connection sees messages in emission
order and a stalled client can't hold up anyone else or the HTTP handler
that published the change.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from models.api.messages import (
    ActivityUpdateMessage,
    ContributionUpdateMessage,
    ModelUpdateMessage,
    ServerMessage,
    StatsUpdateMessage,
    UserTokensUpdateMessage,
)
from models.api.records import (
    ActivityResponse,
    ContributionResponse,
    ModelResponse,
    StatsSnapshot,
)
from models.domain import Activity, Contribution
from repositories import MemoryStore

logger = logging.getLogger(__name__)


class _Connection:
    """One socket, its bound user and its outbound queue"""

    def __init__(self, websocket, user_id: Optional[int], queue_size: int):
        self.websocket = websocket
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.pending = 0
        self.writer: Optional[asyncio.Task] = None


class Broadcaster:
    """
    Hub of live connections.

    Any object with async accept() and send_text(str) works as a
    connection (Starlette's WebSocket in production).

    Args:
        store: Entity store, read for stats and entity snapshots
        send_timeout: Seconds a single send may take before the
            connection is dropped
        queue_size: Messages a connection may have waiting before it is
            dropped as too slow
    """

    def __init__(self, store: MemoryStore, send_timeout: float = 5.0, queue_size: int = 100):
        self.store = store
        self.send_timeout = send_timeout
        self.queue_size = queue_size
        self._connections: Dict[Any, _Connection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_for(self, websocket) -> Optional[int]:
        connection = self._connections.get(websocket)
        return connection.user_id if connection else None

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    async def connect(self, websocket, user_id: Optional[int] = None):
        """
        Accept a connection and queue the current stats for it alone.
        """
        await websocket.accept()

        # No suspension from here on: the snapshot is current when queued
        stats = await self.build_stats()
        connection = _Connection(websocket, user_id, self.queue_size)
        connection.writer = asyncio.create_task(self._write_loop(connection))
        self._connections[websocket] = connection
        logger.info(
            f"WebSocket client connected (user={user_id}, total={len(self._connections)})"
        )
        self._enqueue(connection, StatsUpdateMessage(data=stats).model_dump_json(by_alias=True))

    def disconnect(self, websocket):
        connection = self._connections.pop(websocket, None)
        if connection is None:
            return
        connection.writer.cancel()
        logger.info(
            f"WebSocket client disconnected (user={connection.user_id}, total={len(self._connections)})"
        )

    def authenticate(self, websocket, user_id: int):
        """Bind an open connection to a verified user id"""
        connection = self._connections.get(websocket)
        if connection is None:
            return
        connection.user_id = user_id
        logger.info(f"User {user_id} authenticated on WebSocket")

    async def close(self):
        """Stop every writer task (application shutdown)"""
        connections = list(self._connections.values())
        self._connections.clear()
        for connection in connections:
            connection.writer.cancel()
        await asyncio.gather(*(c.writer for c in connections), return_exceptions=True)

    async def drain(self):
        """Wait until every live connection has sent or dropped its backlog"""
        while any(c.pending for c in self._connections.values()):
            await asyncio.sleep(0.005)

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def _drop(self, connection: _Connection, reason: str):
        if self._connections.get(connection.websocket) is connection:
            del self._connections[connection.websocket]
        if connection.writer is not asyncio.current_task():
            connection.writer.cancel()
        logger.warning(f"Dropping WebSocket connection (user={connection.user_id}): {reason}")

    def _enqueue(self, connection: _Connection, payload: str) -> bool:
        try:
            connection.queue.put_nowait(payload)
        except asyncio.QueueFull:
            self._drop(connection, f"{self.queue_size} messages waiting")
            return False
        connection.pending += 1
        return True

    async def _write_loop(self, connection: _Connection):
        while True:
            payload = await connection.queue.get()
            try:
                await asyncio.wait_for(connection.websocket.send_text(payload), self.send_timeout)
            except asyncio.TimeoutError:
                self._drop(connection, f"send timed out after {self.send_timeout}s")
                return
            except Exception as e:
                self._drop(connection, f"send failed: {e}")
                return
            finally:
                connection.pending -= 1

    async def broadcast(self, message: ServerMessage):
        """Queue the same message for every open connection"""
        payload = message.model_dump_json(by_alias=True)
        for connection in list(self._connections.values()):
            self._enqueue(connection, payload)

    async def send_to_user(self, user_id: int, message: ServerMessage) -> int:
        """
        Queue for every connection authenticated as user_id (all tabs).

        Returns:
            Number of connections the message was queued for
        """
        payload = message.model_dump_json(by_alias=True)
        targets = [c for c in self._connections.values() if c.user_id == user_id]
        return sum(1 for connection in targets if self._enqueue(connection, payload))

    # =========================================================================
    # STATS
    # =========================================================================

    async def build_stats(self) -> StatsSnapshot:
        stats = await self.store.get_stats()
        return StatsSnapshot(
            active_models=stats.active_models,
            compute_contributors=stats.compute_contributors,
            pending_contributions=stats.pending_contributions,
            accepted_contributions=stats.accepted_contributions,
        )

    async def broadcast_stats(self):
        await self.broadcast(StatsUpdateMessage(data=await self.build_stats()))

    # =========================================================================
    # ENTITY UPDATES
    # =========================================================================

    async def broadcast_model_update(self, model_id: int):
        model = await self.store.get_model(model_id)
        if not model:
            logger.warning(f"Model {model_id} vanished before MODEL_UPDATE broadcast")
            return
        await self.broadcast(ModelUpdateMessage(data=ModelResponse.model_validate(model)))

    async def broadcast_new_activity(self, activity: Activity):
        await self.broadcast(
            ActivityUpdateMessage(data=ActivityResponse.model_validate(activity))
        )

    async def broadcast_contribution_update(self, contribution: Contribution):
        """Contribution snapshot followed by a fresh stats broadcast"""
        await self.broadcast(
            ContributionUpdateMessage(data=ContributionResponse.model_validate(contribution))
        )
        await self.broadcast_stats()

    async def notify_user_token_update(self, user_id: int):
        user = await self.store.get_user(user_id)
        if not user:
            return
        await self.send_to_user(
            user_id,
            UserTokensUpdateMessage(user_id=user.id, tokens=user.tokens),
        )
