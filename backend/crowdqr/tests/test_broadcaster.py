"""
Tests for event groups and live update fan-out.
"""
import asyncio
import json

import pytest

from crowdqr.schemas.broadcast import BroadcastType, VoteRemovedPayload
from crowdqr.services.broadcast_service import EventBroadcaster
from crowdqr.services.live_connection import ViewerConnection, ViewerState
from conftest import RecordingViewer


class SlowViewer(RecordingViewer):
    async def send_text(self, message: str) -> None:
        await asyncio.sleep(5)


def vote_removed(event_id: int) -> VoteRemovedPayload:
    return VoteRemovedPayload(event_id=event_id, request_id=7, vote_count=3)


def test_publish_reaches_only_its_group(broadcaster):
    in_a = RecordingViewer()
    in_b = RecordingViewer()
    broadcaster.subscribe(1, in_a)
    broadcaster.subscribe(2, in_b)

    report = asyncio.run(broadcaster.publish(1, BroadcastType.VOTE_REMOVED, vote_removed(1)))

    assert report.delivered == 1
    assert len(in_a.messages) == 1
    assert in_b.messages == []
    assert json.loads(in_a.messages[0]) == {
        "type": "voteRemoved",
        "payload": {"eventId": 1, "requestId": 7, "voteCount": 3}
    }


def test_failing_viewer_is_dropped(broadcaster):
    healthy = RecordingViewer()
    broken = RecordingViewer(fail=True)
    broadcaster.subscribe(1, healthy)
    broadcaster.subscribe(1, broken)

    report = asyncio.run(broadcaster.publish(1, "voteRemoved", vote_removed(1)))

    assert report.delivered == 1
    assert report.failed == 1
    assert len(healthy.messages) == 1
    assert broadcaster.subscriber_count(1) == 1


def test_slow_viewer_times_out():
    hub = EventBroadcaster(send_timeout=0.05)
    fast = RecordingViewer()
    hub.subscribe(1, fast)
    hub.subscribe(1, SlowViewer())

    report = asyncio.run(hub.publish(1, BroadcastType.VOTE_REMOVED, vote_removed(1)))

    assert report.failed == 1
    assert len(fast.messages) == 1
    hub.close()


def test_subscribe_is_idempotent(broadcaster):
    viewer = RecordingViewer()
    first = broadcaster.subscribe(1, viewer)
    second = broadcaster.subscribe(1, viewer)
    assert first == second
    assert broadcaster.subscriber_count(1) == 1

    assert broadcaster.unsubscribe(first)
    assert not broadcaster.unsubscribe(first)


def test_subscribers_is_a_snapshot(broadcaster):
    viewer = RecordingViewer()
    broadcaster.subscribe(1, viewer)
    snapshot = broadcaster.subscribers(1)
    broadcaster.unsubscribe_viewer(viewer)
    assert len(snapshot) == 1
    assert broadcaster.subscribers(1) == []


def test_payload_must_match_group(broadcaster):
    with pytest.raises(ValueError):
        asyncio.run(broadcaster.publish(1, BroadcastType.VOTE_REMOVED, vote_removed(2)))


def test_closed_broadcaster_rejects_subscribers():
    hub = EventBroadcaster()
    hub.subscribe(1, RecordingViewer())
    hub.close()
    assert hub.subscriber_count(1) == 0
    with pytest.raises(RuntimeError):
        hub.subscribe(1, RecordingViewer())


def test_viewer_is_in_one_group_at_a_time(broadcaster):
    connection = ViewerConnection(broadcaster, RecordingViewer())
    assert connection.state == ViewerState.CONNECTED

    connection.join(1)
    connection.join(2)
    assert connection.state == ViewerState.JOINED
    assert connection.event_id == 2
    assert broadcaster.subscriber_count(1) == 0
    assert broadcaster.subscriber_count(2) == 1

    assert connection.leave() == 2
    assert connection.state == ViewerState.CONNECTED
    assert connection.leave() is None


def test_disconnect_is_terminal(broadcaster):
    connection = ViewerConnection(broadcaster, RecordingViewer())
    connection.join(1)
    connection.disconnect()

    assert connection.state == ViewerState.DISCONNECTED
    assert broadcaster.subscriber_count(1) == 0
    with pytest.raises(RuntimeError):
        connection.join(1)
    connection.disconnect()


class FlakyViewer(RecordingViewer):
    """Fails its first send, then delivers normally."""

    def __init__(self):
        super().__init__(fail=True)

    async def send_text(self, message: str) -> None:
        if self.fail:
            self.fail = False
            raise ConnectionError("viewer hiccup")
        self.messages.append(message)


def test_dropped_viewer_can_rejoin(broadcaster):
    viewer = FlakyViewer()
    connection = ViewerConnection(broadcaster, viewer)
    connection.join(1)

    report = asyncio.run(broadcaster.publish(1, BroadcastType.VOTE_REMOVED, vote_removed(1)))
    assert report.failed == 1
    assert connection.state == ViewerState.CONNECTED
    assert connection.event_id is None
    assert broadcaster.subscriber_count(1) == 0
    assert connection.take_dropped() == 1
    assert connection.take_dropped() is None

    connection.join(1)
    assert connection.state == ViewerState.JOINED
    assert broadcaster.subscriber_count(1) == 1

    report = asyncio.run(broadcaster.publish(1, BroadcastType.VOTE_REMOVED, vote_removed(1)))
    assert report.delivered == 1
    assert len(viewer.messages) == 1


def test_drop_of_old_group_leaves_new_membership(broadcaster):
    viewer = RecordingViewer()
    connection = ViewerConnection(broadcaster, viewer)
    old = connection.join(1)
    connection.join(2)

    broadcaster.drop_viewer(viewer)
    assert not broadcaster.is_subscribed(old)
    assert connection.state == ViewerState.CONNECTED
    assert connection.take_dropped() == 2
