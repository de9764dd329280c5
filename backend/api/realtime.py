"""
Real-time channel - WebSocket at /ws

Server pushes MODEL_UPDATE, ACTIVITY_UPDATE, CONTRIBUTION_UPDATE,
STATS_UPDATE and USER_TOKENS_UPDATE (see services/broadcaster.py).

Client messages:
    {"type": "AUTHENTICATE", "token": "<jwt>", "userId": 3}
    {"type": "REGISTER_COMPUTE"}

A connection is bound to a user only through a verified session token,
either at the handshake (access_token cookie or ?token=) or with
AUTHENTICATE. A userId claim that disagrees with the token is ignored.
Malformed messages are logged and dropped without a reply.
"""
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket
from pydantic import ValidationError

from middleware.jwt_session import COOKIE_NAME, user_id_from_token
from models.api.messages import (
    AuthenticateMessage,
    RegisterComputeMessage,
    client_message_adapter,
)
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from .compute import register_compute_provider

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


async def _verified_user_id(store: MemoryStore, token: Optional[str]) -> Optional[int]:
    user_id = user_id_from_token(token)
    if user_id is None or not await store.get_user(user_id):
        return None
    return user_id


async def handle_authenticate(
    websocket,
    message: AuthenticateMessage,
    store: MemoryStore,
    broadcaster: Broadcaster,
):
    user_id = await _verified_user_id(store, message.token)
    if user_id is None:
        logger.warning("Dropping AUTHENTICATE with missing or invalid token")
        return
    if message.user_id is not None and message.user_id != user_id:
        logger.warning(
            f"Dropping AUTHENTICATE claiming user {message.user_id} with a token for user {user_id}"
        )
        return
    broadcaster.authenticate(websocket, user_id)


async def handle_register_compute(
    websocket,
    message: RegisterComputeMessage,
    store: MemoryStore,
    broadcaster: Broadcaster,
    default_model_id: int,
):
    user_id = broadcaster.user_for(websocket)
    if user_id is None:
        logger.warning("Dropping REGISTER_COMPUTE from unauthenticated connection")
        return
    if message.user_id is not None and message.user_id != user_id:
        logger.warning(
            f"Dropping REGISTER_COMPUTE for user {message.user_id} on connection of user {user_id}"
        )
        return
    await register_compute_provider(store, broadcaster, user_id, default_model_id)


async def handle_client_message(websocket, raw: str, app_state):
    """Parse one client frame and dispatch it"""
    try:
        message = client_message_adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Dropping malformed WebSocket message: {e.error_count()} error(s)")
        return

    if isinstance(message, AuthenticateMessage):
        await handle_authenticate(websocket, message, app_state.store, app_state.broadcaster)
    elif isinstance(message, RegisterComputeMessage):
        await handle_register_compute(
            websocket,
            message,
            app_state.store,
            app_state.broadcaster,
            app_state.settings.default_model_id,
        )


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket):
    state = websocket.app.state
    broadcaster: Broadcaster = state.broadcaster

    token = websocket.cookies.get(COOKIE_NAME) or websocket.query_params.get("token")
    user_id = await _verified_user_id(state.store, token)

    await broadcaster.connect(websocket, user_id)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break

            text = frame.get("text")
            if text is None:
                logger.warning("Dropping binary WebSocket frame")
                continue
            await handle_client_message(websocket, text, state)
    finally:
        broadcaster.disconnect(websocket)
