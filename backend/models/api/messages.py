"""
Real-time channel messages

Server -> client: MODEL_UPDATE, ACTIVITY_UPDATE, CONTRIBUTION_UPDATE,
STATS_UPDATE, USER_TOKENS_UPDATE (one JSON object per WebSocket message).

Client -> server: AUTHENTICATE, REGISTER_COMPUTE.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from .base import CamelModel
from .records import ActivityResponse, ContributionResponse, ModelResponse, StatsSnapshot


# =============================================================================
# Server -> client
# =============================================================================

class ModelUpdateMessage(CamelModel):
    type: Literal["MODEL_UPDATE"] = "MODEL_UPDATE"
    data: ModelResponse


class ActivityUpdateMessage(CamelModel):
    type: Literal["ACTIVITY_UPDATE"] = "ACTIVITY_UPDATE"
    data: ActivityResponse


class ContributionUpdateMessage(CamelModel):
    type: Literal["CONTRIBUTION_UPDATE"] = "CONTRIBUTION_UPDATE"
    data: ContributionResponse


class StatsUpdateMessage(CamelModel):
    type: Literal["STATS_UPDATE"] = "STATS_UPDATE"
    data: StatsSnapshot


class UserTokensUpdateMessage(CamelModel):
    type: Literal["USER_TOKENS_UPDATE"] = "USER_TOKENS_UPDATE"
    user_id: int
    tokens: int


ServerMessage = Union[
    ModelUpdateMessage,
    ActivityUpdateMessage,
    ContributionUpdateMessage,
    StatsUpdateMessage,
    UserTokensUpdateMessage,
]


# =============================================================================
# Client -> server
# =============================================================================

class AuthenticateMessage(CamelModel):
    """
    Bind the connection to a user.

    The identity comes from the session token; user_id is only checked
    against it.
    """
    type: Literal["AUTHENTICATE"]
    token: Optional[str] = None
    user_id: Optional[int] = None


class RegisterComputeMessage(CamelModel):
    type: Literal["REGISTER_COMPUTE"]
    user_id: Optional[int] = None


ClientMessage = Annotated[
    Union[AuthenticateMessage, RegisterComputeMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)
