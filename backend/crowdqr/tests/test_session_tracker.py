"""
Tests for event sessions: joins, presence and request limits.
"""
import asyncio
import json
import threading
from datetime import timedelta

import pytest

from crowdqr.core.config import settings
from crowdqr.core.exceptions import (
    EventNotFoundError,
    RequestLimitError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from crowdqr.core.utils import utcnow
from crowdqr.db.store import Store
from crowdqr.models.song_request import SongRequest
from crowdqr.models.user import User
from crowdqr.models.user_session import UserSession
from crowdqr.services.broadcast_service import EventBroadcaster
from crowdqr.services import crowd_service, session_service
from crowdqr.services.notification_service import NotificationService
from conftest import RecordingViewer


def test_join_then_refresh(db, event, make_user):
    user = make_user("alice")
    session, is_new = session_service.join_or_refresh(db, user.id, event.id, "10.0.0.1")
    assert is_new
    assert session.request_count == 0

    again, is_new = session_service.join_or_refresh(db, user.id, event.id, "10.0.0.2")
    assert not is_new
    assert again.id == session.id
    assert again.client_ip == "10.0.0.2"


def test_only_first_join_is_announced(db, broadcaster, event, make_user):
    user = make_user("alice")
    viewer = RecordingViewer()
    broadcaster.subscribe(event.id, viewer)
    notifier = NotificationService(broadcaster)

    _, is_new = asyncio.run(crowd_service.join_event(db, notifier, user, user.id, event.id))
    assert is_new
    _, is_new = asyncio.run(crowd_service.join_event(db, notifier, user, user.id, event.id))
    assert not is_new

    assert len(viewer.messages) == 1
    message = json.loads(viewer.messages[0])
    assert message["type"] == "userJoinedEvent"
    assert message["payload"] == {"eventId": event.id, "username": "alice"}


def test_join_missing_event(db, make_user):
    user = make_user("alice")
    with pytest.raises(EventNotFoundError):
        session_service.join_or_refresh(db, user.id, 999)


def test_active_users_window(db, event, make_user):
    fresh = make_user("fresh")
    stale = make_user("stale")
    session_service.join_or_refresh(db, fresh.id, event.id)
    old_session, _ = session_service.join_or_refresh(db, stale.id, event.id)

    db.query(UserSession).filter(UserSession.id == old_session.id).update(
        {UserSession.last_seen: utcnow() - timedelta(minutes=settings.ACTIVE_USER_WINDOW_MINUTES + 5)}
    )
    db.commit()

    assert session_service.count_active_users(db, event.id) == 1
    active = session_service.active_sessions(db, event.id)
    assert [username for _, username in active] == ["fresh"]


def test_increment_and_touch(db, event, make_user):
    user = make_user("alice")
    session, _ = session_service.join_or_refresh(db, user.id, event.id)

    session = session_service.increment_request_count(db, session.id)
    session = session_service.increment_request_count(db, session.id)
    assert session.request_count == 2

    touched = session_service.touch(db, session.id)
    assert touched.request_count == 2

    with pytest.raises(SessionNotFoundError):
        session_service.increment_request_count(db, 999)


def test_request_limit(db, event, make_user, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REQUESTS_PER_SESSION", 1)
    user = make_user("alice")
    session, _ = session_service.join_or_refresh(db, user.id, event.id)

    assert session_service.reserve_request_slot(db, user.id, event.id) == session.id
    with pytest.raises(RequestLimitError):
        session_service.reserve_request_slot(db, user.id, event.id)
    assert session_service.get_session(db, session.id).request_count == 1

    session_service.release_request_slot(db, session.id)
    assert session_service.get_session(db, session.id).request_count == 0
    assert session_service.reserve_request_slot(db, user.id, event.id) == session.id


def test_request_slot_without_session(db, event, make_user, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REQUESTS_PER_SESSION", 1)
    user = make_user("alice")
    assert session_service.reserve_request_slot(db, user.id, event.id) is None


def test_concurrent_submissions_respect_limit(session_factory, broadcaster, event, make_user, monkeypatch):
    """Submitters racing for the last slot: one request is stored, the rest hit the limit."""
    monkeypatch.setattr(settings, "MAX_REQUESTS_PER_SESSION", 1)
    fan = make_user("fan")
    fan_id, event_id = fan.id, event.id
    db = session_factory()
    try:
        session_id = session_service.join_or_refresh(db, fan_id, event_id)[0].id
    finally:
        db.close()

    attempts = 6
    barrier = threading.Barrier(attempts)
    outcomes = []
    lock = threading.Lock()

    def submit(index):
        db = session_factory()
        try:
            actor = db.query(User).filter(User.id == fan_id).one()
            barrier.wait()
            asyncio.run(crowd_service.submit_request(
                db, NotificationService(broadcaster), actor, fan_id, event_id, f"Song {index}"
            ))
            outcome = "ok"
        except RequestLimitError:
            outcome = "limited"
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("limited") == attempts - 1

    db = session_factory()
    try:
        assert db.query(SongRequest).filter(SongRequest.event_id == event_id).count() == 1
        assert session_service.get_session(db, session_id).request_count == 1
    finally:
        db.close()


def test_failed_insert_releases_slot(db, event, make_user, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REQUESTS_PER_SESSION", 1)
    fan = make_user("fan")
    session, _ = session_service.join_or_refresh(db, fan.id, event.id)

    def broken_insert(self, *args, **kwargs):
        raise StoreUnavailableError()

    monkeypatch.setattr(Store, "insert_request", broken_insert)
    with pytest.raises(StoreUnavailableError):
        asyncio.run(crowd_service.submit_request(
            db, NotificationService(EventBroadcaster()), fan, fan.id, event.id, "Lost song"
        ))

    assert session_service.get_session(db, session.id).request_count == 0


def test_purge_keeps_active_sessions(db, event, make_user):
    recent = make_user("recent")
    ancient = make_user("ancient")
    session_service.join_or_refresh(db, recent.id, event.id)
    old_session, _ = session_service.join_or_refresh(db, ancient.id, event.id)

    db.query(UserSession).filter(UserSession.id == old_session.id).update(
        {UserSession.last_seen: utcnow() - timedelta(days=30)}
    )
    db.commit()

    # Zero hours still stops at the active window
    assert session_service.purge_stale_sessions(db, older_than_hours=0) == 1
    assert session_service.count_active_users(db, event.id) == 1
    assert db.query(UserSession).count() == 1


def test_join_session_endpoint(client, event, make_user, auth_headers):
    user = make_user("alice")
    body = {"user_id": user.id, "event_id": event.id}

    first = client.post("/api/sessions", json=body, headers=auth_headers(user))
    assert first.status_code == 201
    assert first.json()["is_new"] is True

    second = client.post("/api/sessions", json=body, headers=auth_headers(user))
    assert second.status_code == 200
    assert second.json()["is_new"] is False
    assert second.json()["id"] == first.json()["id"]


def test_join_session_for_someone_else_is_forbidden(client, event, make_user, auth_headers):
    alice = make_user("alice")
    bob = make_user("bob")
    response = client.post(
        "/api/sessions",
        json={"user_id": bob.id, "event_id": event.id},
        headers=auth_headers(alice)
    )
    assert response.status_code == 403
    assert response.json()["details"]["code"] == "FORBIDDEN"
