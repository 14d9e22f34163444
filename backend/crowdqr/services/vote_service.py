"""
Vote service: at most one vote per (user, request), with fresh vote counts.
"""
import logging
from dataclasses import dataclass
from typing import List
from sqlalchemy.orm import Session
from crowdqr.core.exceptions import (
    DuplicateVoteError,
    RequestNotFoundError,
    StoreUnavailableError,
    UserNotFoundError,
    VoteNotFoundError,
)
from crowdqr.db.store import Store, VoteInsertOutcome
from crowdqr.models.vote import Vote

logger = logging.getLogger(__name__)

VOTE_INSERT_ATTEMPTS = 5


@dataclass(frozen=True)
class VoteTally:
    """Vote count of a request right after a cast or a removal."""
    request_id: int
    event_id: int
    user_id: int
    vote_count: int


def cast_vote(db: Session, user_id: int, request_id: int) -> VoteTally:
    """
    Record a vote of user_id for request_id.

    The existence pre-check only saves a round trip in the common duplicate
    case. Two callers racing past it are decided by the unique constraint in
    the store: exactly one insert wins, the other gets DuplicateVoteError.
    """
    store = Store(db)

    if not store.user_exists(user_id):
        raise UserNotFoundError(user_id)

    request = store.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    event_id = request.event_id

    for attempt in range(1, VOTE_INSERT_ATTEMPTS + 1):
        if store.has_vote(user_id, request_id):
            raise DuplicateVoteError(user_id, request_id)
        try:
            result = store.insert_vote(user_id, request_id)
            break
        except StoreUnavailableError:
            # SQLite reports a lost write-lock race as busy instead of waiting
            if attempt == VOTE_INSERT_ATTEMPTS:
                raise
            logger.info(f"Vote insert for user {user_id} on request {request_id} hit a busy store, attempt {attempt}")

    if result.outcome == VoteInsertOutcome.DUPLICATE:
        logger.info(f"Concurrent duplicate vote rejected for user {user_id} on request {request_id}")
        raise DuplicateVoteError(user_id, request_id)
    if result.outcome == VoteInsertOutcome.MISSING_PARENT:
        # Request (or user) was deleted between the checks and the insert
        if not store.user_exists(user_id):
            raise UserNotFoundError(user_id)
        raise RequestNotFoundError(request_id)

    logger.debug(f"User {user_id} voted for request {request_id}, count now {result.vote_count}")
    return VoteTally(
        request_id=request_id,
        event_id=event_id,
        user_id=user_id,
        vote_count=result.vote_count
    )


def remove_vote(db: Session, user_id: int, request_id: int) -> VoteTally:
    """Delete the vote of user_id for request_id. A missing vote is VoteNotFoundError."""
    store = Store(db)

    request = store.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    event_id = request.event_id

    if not store.delete_vote(user_id, request_id):
        raise VoteNotFoundError(user_id, request_id)

    vote_count = store.count_votes(request_id)
    logger.debug(f"User {user_id} removed vote on request {request_id}, count now {vote_count}")
    return VoteTally(
        request_id=request_id,
        event_id=event_id,
        user_id=user_id,
        vote_count=vote_count
    )


def list_votes_for_request(db: Session, request_id: int) -> List[Vote]:
    """Votes of a request, oldest first."""
    store = Store(db)
    if store.get_request(request_id) is None:
        raise RequestNotFoundError(request_id)
    return store.list_votes(request_id)
