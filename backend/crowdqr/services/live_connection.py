"""
Per-socket viewer state: connected, joined to one event, or disconnected.
"""
import enum
import logging
from typing import Any, Optional
from crowdqr.services.broadcast_service import EventBroadcaster, Subscription

logger = logging.getLogger(__name__)


class ViewerState(str, enum.Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class ViewerConnection:
    """
    Tracks which event group a single viewer is in.

    A viewer is in at most one group at a time: joining another event leaves
    the current one first. When the broadcaster drops the viewer after a
    failed delivery the connection falls back to CONNECTED, and joining again
    subscribes afresh. DISCONNECTED is terminal; a reconnect is a new
    ViewerConnection and must join again.
    """

    def __init__(self, broadcaster: EventBroadcaster, viewer: Any):
        self.broadcaster = broadcaster
        self.viewer = viewer
        self.state = ViewerState.CONNECTED
        self._subscription: Optional[Subscription] = None
        self._dropped_event_id: Optional[int] = None

    @property
    def event_id(self) -> Optional[int]:
        return self._subscription.event_id if self._subscription else None

    def _ensure_open(self) -> None:
        if self.state == ViewerState.DISCONNECTED:
            raise RuntimeError("Viewer connection is closed")

    def join(self, event_id: int) -> Subscription:
        self._ensure_open()
        if self._subscription is not None:
            if self._subscription.event_id == event_id and self.broadcaster.is_subscribed(self._subscription):
                return self._subscription
            self.leave()
        self._subscription = self.broadcaster.subscribe(event_id, self.viewer, on_drop=self._dropped)
        self._dropped_event_id = None
        self.state = ViewerState.JOINED
        return self._subscription

    def leave(self) -> Optional[int]:
        """Leave the current group, if any. Returns the event id that was left."""
        self._ensure_open()
        if self._subscription is None:
            return None
        left = self._subscription.event_id
        self.broadcaster.unsubscribe(self._subscription)
        self._subscription = None
        self.state = ViewerState.CONNECTED
        return left

    def _dropped(self, subscription: Subscription) -> None:
        if self._subscription is not None and self._subscription.handle_id == subscription.handle_id:
            self._subscription = None
            if self.state == ViewerState.JOINED:
                self.state = ViewerState.CONNECTED
            self._dropped_event_id = subscription.event_id
            logger.info(f"Viewer dropped from event {subscription.event_id} group after a failed delivery")

    def take_dropped(self) -> Optional[int]:
        """Event id this viewer was dropped from since the last call, if any."""
        event_id, self._dropped_event_id = self._dropped_event_id, None
        return event_id

    def disconnect(self) -> None:
        if self.state == ViewerState.DISCONNECTED:
            return
        removed = self.broadcaster.unsubscribe_viewer(self.viewer)
        self._subscription = None
        self.state = ViewerState.DISCONNECTED
        logger.debug(f"Viewer disconnected, released {removed} group memberships")
