"""
Tests for one-vote-per-user voting.
"""
import asyncio
import json
import threading

import pytest

from crowdqr.core.exceptions import DuplicateVoteError, RequestNotFoundError, VoteNotFoundError
from crowdqr.db.store import Store, VoteInsertOutcome
from crowdqr.services import crowd_service, vote_service
from crowdqr.services.notification_service import NotificationService
from conftest import RecordingViewer


@pytest.fixture
def song_request(db, event, make_user):
    requester = make_user("requester")
    return Store(db).insert_request(requester.id, event.id, "Dancing Queen", "ABBA")


def test_concurrent_votes_count_once(session_factory, song_request, make_user):
    """Many simultaneous votes by one user leave exactly one vote."""
    voter = make_user("eager_voter")
    voter_id, request_id = voter.id, song_request.id
    attempts = 8
    barrier = threading.Barrier(attempts)
    outcomes = []
    lock = threading.Lock()

    def cast():
        db = session_factory()
        try:
            barrier.wait()
            vote_service.cast_vote(db, voter_id, request_id)
            outcome = "ok"
        except DuplicateVoteError:
            outcome = "duplicate"
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=cast) for _ in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("duplicate") == attempts - 1

    db = session_factory()
    try:
        assert Store(db).count_votes(request_id) == 1
    finally:
        db.close()


def test_store_reports_duplicate_insert(db, song_request, make_user):
    voter = make_user("voter")
    store = Store(db)
    first = store.insert_vote(voter.id, song_request.id)
    second = store.insert_vote(voter.id, song_request.id)
    assert first.outcome == VoteInsertOutcome.INSERTED
    assert first.vote_count == 1
    assert second.outcome == VoteInsertOutcome.DUPLICATE


def test_store_reports_missing_parent(db, make_user):
    voter = make_user("voter")
    result = Store(db).insert_vote(voter.id, 4242)
    assert result.outcome == VoteInsertOutcome.MISSING_PARENT


def test_remove_missing_vote_is_not_found(db, song_request, make_user):
    voter = make_user("voter")
    with pytest.raises(VoteNotFoundError):
        vote_service.remove_vote(db, voter.id, song_request.id)


def test_remove_twice_is_not_found(db, song_request, make_user):
    voter = make_user("voter")
    vote_service.cast_vote(db, voter.id, song_request.id)

    tally = vote_service.remove_vote(db, voter.id, song_request.id)
    assert tally.vote_count == 0

    with pytest.raises(VoteNotFoundError):
        vote_service.remove_vote(db, voter.id, song_request.id)


def test_vote_on_missing_request(db, make_user):
    voter = make_user("voter")
    with pytest.raises(RequestNotFoundError):
        vote_service.cast_vote(db, voter.id, 999)


def test_vote_scenario(db, broadcaster, event, song_request, make_user):
    """A votes, B votes, A votes again: the count stays at 2."""
    user_a = make_user("user_a")
    user_b = make_user("user_b")
    viewer = RecordingViewer()
    broadcaster.subscribe(event.id, viewer)
    notifier = NotificationService(broadcaster)

    tally = asyncio.run(crowd_service.vote(db, notifier, user_a, user_a.id, song_request.id))
    assert tally.vote_count == 1
    message = json.loads(viewer.messages[-1])
    assert message == {
        "type": "voteAdded",
        "payload": {
            "eventId": event.id,
            "requestId": song_request.id,
            "voteCount": 1,
            "userId": user_a.id
        }
    }

    tally = asyncio.run(crowd_service.vote(db, notifier, user_b, user_b.id, song_request.id))
    assert tally.vote_count == 2

    with pytest.raises(DuplicateVoteError):
        asyncio.run(crowd_service.vote(db, notifier, user_a, user_a.id, song_request.id))

    assert Store(db).count_votes(song_request.id) == 2
    assert len(viewer.messages) == 2
