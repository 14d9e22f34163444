"""
Pydantic schemas for live update messages pushed to event viewers.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, Type
import enum


class BroadcastType(str, enum.Enum):
    """Live update types a viewer can receive."""
    REQUEST_ADDED = "requestAdded"
    REQUEST_STATUS_UPDATED = "requestStatusUpdated"
    VOTE_ADDED = "voteAdded"
    VOTE_REMOVED = "voteRemoved"
    USER_JOINED_EVENT = "userJoinedEvent"


class BroadcastPayload(BaseModel):
    """Base payload; serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    event_id: int


class RequestAddedPayload(BroadcastPayload):
    request_id: int
    requester_name: str


class RequestStatusUpdatedPayload(BroadcastPayload):
    request_id: int
    status: str


class VoteAddedPayload(BroadcastPayload):
    request_id: int
    vote_count: int
    user_id: int


class VoteRemovedPayload(BroadcastPayload):
    request_id: int
    vote_count: int


class UserJoinedEventPayload(BroadcastPayload):
    username: str


PAYLOAD_MODELS: Dict[BroadcastType, Type[BroadcastPayload]] = {
    BroadcastType.REQUEST_ADDED: RequestAddedPayload,
    BroadcastType.REQUEST_STATUS_UPDATED: RequestStatusUpdatedPayload,
    BroadcastType.VOTE_ADDED: VoteAddedPayload,
    BroadcastType.VOTE_REMOVED: VoteRemovedPayload,
    BroadcastType.USER_JOINED_EVENT: UserJoinedEventPayload,
}
