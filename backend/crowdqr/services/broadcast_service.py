"""
Event broadcaster: groups connected viewers by event and fans out live updates.

A viewer is anything with an awaitable ``send_text(str)``, in practice a
FastAPI WebSocket. Delivery is best effort and at most once per viewer per
publish; nothing is queued or replayed, reconnecting clients re-fetch state.
"""
import asyncio
import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from crowdqr.core.config import settings
from crowdqr.schemas.broadcast import BroadcastPayload, BroadcastType, PAYLOAD_MODELS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe; pass it back to unsubscribe."""
    handle_id: int
    event_id: int
    viewer: Any
    on_drop: Optional[Callable[["Subscription"], None]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class DeliveryReport:
    event_id: int
    event_type: BroadcastType
    delivered: int
    failed: int


class EventBroadcaster:
    """Process-wide hub mapping event id to the viewers subscribed to it."""

    def __init__(self, send_timeout: Optional[float] = None):
        self.send_timeout = send_timeout if send_timeout is not None else settings.BROADCAST_SEND_TIMEOUT_SECONDS
        self._groups: Dict[int, Dict[int, Subscription]] = {}
        self._lock = threading.Lock()
        self._handle_ids = itertools.count(1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self,
        event_id: int,
        viewer: Any,
        on_drop: Optional[Callable[[Subscription], None]] = None
    ) -> Subscription:
        """
        Add viewer to the event group. Subscribing twice returns the existing handle.

        on_drop is called with the subscription when a failed delivery removes
        the viewer, so the owner of the socket can forget its membership.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Broadcaster is closed")
            group = self._groups.setdefault(event_id, {})
            for subscription in group.values():
                if subscription.viewer is viewer:
                    return subscription
            subscription = Subscription(next(self._handle_ids), event_id, viewer, on_drop)
            group[subscription.handle_id] = subscription
            size = len(group)
        logger.info(f"Viewer joined event {event_id} group, group size: {size}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove one membership. Returns False if it was already gone."""
        with self._lock:
            group = self._groups.get(subscription.event_id)
            if not group or subscription.handle_id not in group:
                return False
            del group[subscription.handle_id]
            if not group:
                del self._groups[subscription.event_id]
        logger.info(f"Viewer left event {subscription.event_id} group")
        return True

    def is_subscribed(self, subscription: Subscription) -> bool:
        """Whether the handle is still a member of its group."""
        with self._lock:
            return subscription.handle_id in self._groups.get(subscription.event_id, {})

    def _remove_viewer(self, viewer: Any) -> List[Subscription]:
        removed = []
        with self._lock:
            for event_id in list(self._groups):
                group = self._groups[event_id]
                for handle_id in [h for h, s in group.items() if s.viewer is viewer]:
                    removed.append(group.pop(handle_id))
                if not group:
                    del self._groups[event_id]
        return removed

    def unsubscribe_viewer(self, viewer: Any) -> int:
        """Remove viewer from every group it belongs to. Returns the number removed."""
        return len(self._remove_viewer(viewer))

    def drop_viewer(self, viewer: Any) -> int:
        """Remove an unreachable viewer and tell each membership owner it was dropped."""
        removed = self._remove_viewer(viewer)
        # Outside the lock so callbacks may re-enter the broadcaster
        for subscription in removed:
            if subscription.on_drop is not None:
                subscription.on_drop(subscription)
        return len(removed)

    def subscribers(self, event_id: int) -> List[Subscription]:
        """Snapshot of the event group, safe to iterate while others (un)subscribe."""
        with self._lock:
            return list(self._groups.get(event_id, {}).values())

    def subscriber_count(self, event_id: int) -> int:
        with self._lock:
            return len(self._groups.get(event_id, {}))

    def _build_message(
        self,
        event_id: int,
        event_type: BroadcastType,
        payload: Union[BroadcastPayload, Mapping[str, Any]]
    ) -> str:
        model = PAYLOAD_MODELS[event_type]
        if isinstance(payload, BroadcastPayload):
            payload = payload.model_dump(by_alias=True)
        body = model.model_validate(payload)
        if body.event_id != event_id:
            raise ValueError(f"Payload eventId {body.event_id} does not match group {event_id}")
        return json.dumps(
            {"type": event_type.value, "payload": body.model_dump(by_alias=True)},
            ensure_ascii=False
        )

    async def _deliver(self, subscription: Subscription, message: str) -> bool:
        try:
            await asyncio.wait_for(subscription.viewer.send_text(message), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning(f"Delivery to viewer in event {subscription.event_id} group failed: {e!r}")
            return False

    async def publish(
        self,
        event_id: int,
        event_type: Union[BroadcastType, str],
        payload: Union[BroadcastPayload, Mapping[str, Any]]
    ) -> DeliveryReport:
        """
        Send one message to every current subscriber of event_id.

        Sends run concurrently; a failing or slow viewer is dropped from all
        groups and does not affect delivery to the rest.
        """
        event_type = BroadcastType(event_type)
        message = self._build_message(event_id, event_type, payload)

        subscriptions = self.subscribers(event_id)
        if not subscriptions:
            logger.debug(f"No viewers in event {event_id} group, skipping {event_type.value}")
            return DeliveryReport(event_id, event_type, delivered=0, failed=0)

        results = await asyncio.gather(*(self._deliver(s, message) for s in subscriptions))

        failed = [s for s, ok in zip(subscriptions, results) if not ok]
        for subscription in failed:
            self.drop_viewer(subscription.viewer)
        if failed:
            logger.info(f"Dropped {len(failed)} unreachable viewers from event {event_id} group")

        report = DeliveryReport(
            event_id=event_id,
            event_type=event_type,
            delivered=len(subscriptions) - len(failed),
            failed=len(failed)
        )
        logger.debug(f"Broadcast {event_type.value} to event {event_id}: {report.delivered} delivered, {report.failed} failed")
        return report

    def close(self) -> None:
        """Drop every group. Called once at shutdown."""
        with self._lock:
            self._closed = True
            viewer_count = sum(len(group) for group in self._groups.values())
            self._groups.clear()
        logger.info(f"Broadcaster closed, released {viewer_count} subscriptions")
