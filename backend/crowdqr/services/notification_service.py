"""
Typed live notifications for an event group.
"""
import logging
from crowdqr.schemas.broadcast import (
    BroadcastType,
    RequestAddedPayload,
    RequestStatusUpdatedPayload,
    UserJoinedEventPayload,
    VoteAddedPayload,
    VoteRemovedPayload,
)
from crowdqr.services.broadcast_service import DeliveryReport, EventBroadcaster

logger = logging.getLogger(__name__)


class NotificationService:
    """Builds the fixed payload for each broadcast type and publishes it."""

    def __init__(self, broadcaster: EventBroadcaster):
        self.broadcaster = broadcaster

    async def notify_request_added(self, event_id: int, request_id: int, requester_name: str) -> DeliveryReport:
        logger.info(f"Broadcasting requestAdded for event {event_id}, request {request_id}")
        return await self.broadcaster.publish(
            event_id,
            BroadcastType.REQUEST_ADDED,
            RequestAddedPayload(event_id=event_id, request_id=request_id, requester_name=requester_name)
        )

    async def notify_request_status_updated(self, event_id: int, request_id: int, status: str) -> DeliveryReport:
        logger.info(f"Broadcasting requestStatusUpdated for event {event_id}, request {request_id}, status {status}")
        return await self.broadcaster.publish(
            event_id,
            BroadcastType.REQUEST_STATUS_UPDATED,
            RequestStatusUpdatedPayload(event_id=event_id, request_id=request_id, status=status)
        )

    async def notify_vote_added(self, event_id: int, request_id: int, vote_count: int, user_id: int) -> DeliveryReport:
        logger.info(f"Broadcasting voteAdded for event {event_id}, request {request_id}, count {vote_count}")
        return await self.broadcaster.publish(
            event_id,
            BroadcastType.VOTE_ADDED,
            VoteAddedPayload(event_id=event_id, request_id=request_id, vote_count=vote_count, user_id=user_id)
        )

    async def notify_vote_removed(self, event_id: int, request_id: int, vote_count: int) -> DeliveryReport:
        logger.info(f"Broadcasting voteRemoved for event {event_id}, request {request_id}, count {vote_count}")
        return await self.broadcaster.publish(
            event_id,
            BroadcastType.VOTE_REMOVED,
            VoteRemovedPayload(event_id=event_id, request_id=request_id, vote_count=vote_count)
        )

    async def notify_user_joined_event(self, event_id: int, username: str) -> DeliveryReport:
        logger.info(f"Broadcasting userJoinedEvent for event {event_id}, user {username}")
        return await self.broadcaster.publish(
            event_id,
            BroadcastType.USER_JOINED_EVENT,
            UserJoinedEventPayload(event_id=event_id, username=username)
        )
