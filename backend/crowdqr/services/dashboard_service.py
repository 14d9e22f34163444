"""
Dashboard service: live event summaries and rankings for DJs.

Every figure is an aggregate query at call time; nothing is cached, so the
numbers cannot drift from the request and vote tables. Reads are not
transactional with concurrent votes, which is acceptable for an advisory view.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from crowdqr.core.config import settings
from crowdqr.core.exceptions import DjNotFoundError, EventNotFoundError, ValidationFailedError
from crowdqr.db.store import RankedRequest, Store
from crowdqr.models.song_request import RequestStatus
from crowdqr.schemas.dashboard import (
    ActiveUser,
    DjEventStat,
    EventSummary,
    RequestCounts,
    TopRequest,
)
from crowdqr.services.session_service import active_since

logger = logging.getLogger(__name__)


def _to_top_request(ranked: RankedRequest) -> TopRequest:
    request = ranked.request
    return TopRequest(
        request_id=request.id,
        song_name=request.song_name,
        artist_name=request.artist_name,
        requester=ranked.requester,
        status=request.status,
        vote_count=ranked.vote_count,
        created_at=request.created_at
    )


def top_requests(
    db: Session,
    event_id: int,
    status: RequestStatus = RequestStatus.PENDING,
    limit: Optional[int] = None
) -> List[TopRequest]:
    """
    Requests of an event with the given status, most votes first.

    Ties go to the earlier request (then the lower id), so repeated calls
    page the same way. The limit is applied after ordering.
    """
    if limit is None:
        limit = settings.TOP_REQUESTS_DEFAULT_LIMIT
    if limit < 1:
        raise ValidationFailedError("limit must be at least 1")

    store = Store(db)
    if not store.event_exists(event_id):
        raise EventNotFoundError(event_id)

    return [_to_top_request(r) for r in store.ranked_requests(event_id, status=status, limit=limit)]


def summary(db: Session, event_id: int, now: Optional[datetime] = None) -> EventSummary:
    """Counts by status, vote total, active users and short request lists for one event."""
    store = Store(db)
    if not store.event_exists(event_id):
        raise EventNotFoundError(event_id)

    counts = store.request_counts_by_status([event_id])[event_id]
    total_votes = store.total_votes_by_event([event_id])[event_id]
    active = store.active_sessions(event_id, active_since(now))

    pending = store.ranked_requests(
        event_id,
        status=RequestStatus.PENDING,
        limit=settings.TOP_REQUESTS_DEFAULT_LIMIT
    )
    approved = store.ranked_requests(
        event_id,
        status=RequestStatus.APPROVED,
        limit=settings.RECENT_REQUESTS_LIMIT,
        newest_first=True
    )
    rejected = store.ranked_requests(
        event_id,
        status=RequestStatus.REJECTED,
        limit=settings.RECENT_REQUESTS_LIMIT,
        newest_first=True
    )

    return EventSummary(
        event_id=event_id,
        total_requests=sum(counts.values()),
        pending_requests=counts[RequestStatus.PENDING],
        approved_requests=counts[RequestStatus.APPROVED],
        rejected_requests=counts[RequestStatus.REJECTED],
        total_votes=total_votes,
        active_users=len(active),
        top_requests=[_to_top_request(r) for r in pending],
        recently_approved=[_to_top_request(r) for r in approved],
        recently_rejected=[_to_top_request(r) for r in rejected],
        active_users_list=[
            ActiveUser(user_id=session.user_id, username=username, last_seen=session.last_seen)
            for session, username in active
        ]
    )


def dj_event_stats(db: Session, dj_user_id: int) -> List[DjEventStat]:
    """Request and vote totals for every event hosted by a DJ, oldest event first."""
    store = Store(db)
    if not store.dj_exists(dj_user_id):
        raise DjNotFoundError(dj_user_id)

    events = store.events_for_dj(dj_user_id)
    event_ids = [event.id for event in events]
    counts = store.request_counts_by_status(event_ids)
    votes = store.total_votes_by_event(event_ids)

    stats = []
    for event in events:
        by_status = counts[event.id]
        stats.append(DjEventStat(
            event_id=event.id,
            name=event.name,
            slug=event.slug,
            is_active=event.is_active,
            created_at=event.created_at,
            request_counts=RequestCounts(
                total=sum(by_status.values()),
                pending=by_status[RequestStatus.PENDING],
                approved=by_status[RequestStatus.APPROVED],
                rejected=by_status[RequestStatus.REJECTED]
            ),
            total_votes=votes[event.id]
        ))
    logger.debug(f"Computed stats for {len(stats)} events of DJ {dj_user_id}")
    return stats
