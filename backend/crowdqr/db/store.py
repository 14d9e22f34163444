"""
Store: the single gateway for reads and writes that carry invariants.

Uniqueness (username, email, event slug, one vote per user and request, one
session per user and event) is enforced by database constraints and surfaced
here as typed results or domain errors, never as driver exceptions.
"""
import enum
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from crowdqr.core.exceptions import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    StoreUnavailableError,
)
from crowdqr.core.utils import utcnow
from crowdqr.models import Event, RequestStatus, SongRequest, User, UserRole, UserSession, Vote

logger = logging.getLogger(__name__)


class VoteInsertOutcome(str, enum.Enum):
    """Result of a guarded vote insert."""
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    MISSING_PARENT = "missing_parent"


@dataclass
class VoteInsertResult:
    outcome: VoteInsertOutcome
    vote: Optional[Vote] = None
    vote_count: int = 0


@dataclass
class RequestWithVotes:
    request: SongRequest
    vote_count: int
    voter_ids: List[int] = field(default_factory=list)


@dataclass
class RankedRequest:
    request: SongRequest
    requester: str
    vote_count: int


def _store_call(method):
    """Translate driver-level I/O failures into a retryable domain error."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store operation {method.__name__} failed: {e}", exc_info=True)
            raise StoreUnavailableError() from e
    return wrapper


class Store:
    """SQLAlchemy-backed store bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    # Users

    @_store_call
    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    @_store_call
    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    @_store_call
    def user_exists(self, user_id: int) -> bool:
        return self.db.query(User.id).filter(User.id == user_id).first() is not None

    @_store_call
    def dj_exists(self, dj_user_id: int) -> bool:
        return self.db.query(User.id).filter(
            User.id == dj_user_id,
            User.role == UserRole.DJ
        ).first() is not None

    @_store_call
    def insert_user(
        self,
        username: str,
        role: UserRole = UserRole.AUDIENCE,
        email: Optional[str] = None,
        hashed_password: Optional[str] = None
    ) -> User:
        user = User(username=username, email=email, hashed_password=hashed_password, role=role)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self.get_user_by_username(username) is not None:
                raise ConflictError("Username is already taken", ErrorCode.USERNAME_TAKEN) from e
            raise ConflictError("Email is already registered", ErrorCode.EMAIL_TAKEN) from e
        self.db.refresh(user)
        return user

    # Events

    @_store_call
    def get_event(self, event_id: int) -> Optional[Event]:
        return self.db.query(Event).filter(Event.id == event_id).first()

    @_store_call
    def get_event_by_slug(self, slug: str) -> Optional[Event]:
        return self.db.query(Event).filter(Event.slug == slug).first()

    @_store_call
    def event_exists(self, event_id: int) -> bool:
        return self.db.query(Event.id).filter(Event.id == event_id).first() is not None

    @_store_call
    def events_for_dj(self, dj_user_id: int) -> List[Event]:
        return self.db.query(Event).filter(
            Event.dj_user_id == dj_user_id
        ).order_by(Event.created_at.asc(), Event.id.asc()).all()

    @_store_call
    def insert_event(self, dj_user_id: int, name: str, slug: str, is_active: bool = True) -> Event:
        event = Event(dj_user_id=dj_user_id, name=name, slug=slug, is_active=is_active)
        self.db.add(event)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An event with this slug already exists", ErrorCode.SLUG_TAKEN) from e
        self.db.refresh(event)
        return event

    @_store_call
    def save_event(self, event: Event) -> Event:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An event with this slug already exists", ErrorCode.SLUG_TAKEN) from e
        self.db.refresh(event)
        return event

    @_store_call
    def delete_event(self, event: Event) -> None:
        self.db.delete(event)
        self.db.commit()

    # Requests

    @_store_call
    def get_request(self, request_id: int) -> Optional[SongRequest]:
        return self.db.query(SongRequest).filter(SongRequest.id == request_id).first()

    @_store_call
    def get_request_with_votes(self, request_id: int) -> Optional[RequestWithVotes]:
        request = self.get_request(request_id)
        if request is None:
            return None
        voter_ids = [
            row.user_id for row in self.db.query(Vote.user_id).filter(
                Vote.request_id == request_id
            ).order_by(Vote.created_at.asc(), Vote.id.asc()).all()
        ]
        return RequestWithVotes(request=request, vote_count=len(voter_ids), voter_ids=voter_ids)

    @_store_call
    def insert_request(
        self,
        user_id: int,
        event_id: int,
        song_name: str,
        artist_name: Optional[str] = None
    ) -> SongRequest:
        request = SongRequest(
            user_id=user_id,
            event_id=event_id,
            song_name=song_name,
            artist_name=artist_name,
            status=RequestStatus.PENDING
        )
        self.db.add(request)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise NotFoundError("User or event no longer exists", ErrorCode.EVENT_NOT_FOUND) from e
        self.db.refresh(request)
        return request

    @_store_call
    def set_request_status(self, request: SongRequest, status: RequestStatus) -> SongRequest:
        request.status = status
        self.db.commit()
        self.db.refresh(request)
        return request

    @_store_call
    def delete_request(self, request: SongRequest) -> None:
        self.db.delete(request)
        self.db.commit()

    # Votes

    @_store_call
    def count_votes(self, request_id: int) -> int:
        return self.db.query(func.count(Vote.id)).filter(Vote.request_id == request_id).scalar() or 0

    @_store_call
    def has_vote(self, user_id: int, request_id: int) -> bool:
        return self.db.query(Vote.id).filter(
            Vote.user_id == user_id,
            Vote.request_id == request_id
        ).first() is not None

    @_store_call
    def list_votes(self, request_id: int) -> List[Vote]:
        return self.db.query(Vote).filter(
            Vote.request_id == request_id
        ).order_by(Vote.created_at.asc(), Vote.id.asc()).all()

    @_store_call
    def insert_vote(self, user_id: int, request_id: int) -> VoteInsertResult:
        """Insert a vote row; the unique constraint decides between racing callers."""
        vote = Vote(user_id=user_id, request_id=request_id)
        self.db.add(vote)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            if self.has_vote(user_id, request_id):
                return VoteInsertResult(outcome=VoteInsertOutcome.DUPLICATE)
            return VoteInsertResult(outcome=VoteInsertOutcome.MISSING_PARENT)

        # Counted inside the inserting transaction so the caller's own vote is included
        vote_count = self.count_votes(request_id)
        self.db.commit()
        self.db.refresh(vote)
        return VoteInsertResult(outcome=VoteInsertOutcome.INSERTED, vote=vote, vote_count=vote_count)

    @_store_call
    def delete_vote(self, user_id: int, request_id: int) -> bool:
        deleted = self.db.query(Vote).filter(
            Vote.user_id == user_id,
            Vote.request_id == request_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    # Sessions

    @_store_call
    def get_session(self, session_id: int) -> Optional[UserSession]:
        return self.db.query(UserSession).filter(UserSession.id == session_id).first()

    @_store_call
    def find_session(self, user_id: int, event_id: int) -> Optional[UserSession]:
        return self.db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.event_id == event_id
        ).first()

    @_store_call
    def sessions_for_event(self, event_id: int) -> List[UserSession]:
        return self.db.query(UserSession).filter(
            UserSession.event_id == event_id
        ).order_by(UserSession.last_seen.desc()).all()

    def _refresh_session(self, session: UserSession, client_ip: Optional[str]) -> UserSession:
        session.last_seen = utcnow()
        if client_ip:
            session.client_ip = client_ip
        self.db.commit()
        self.db.refresh(session)
        return session

    @_store_call
    def upsert_session(
        self,
        user_id: int,
        event_id: int,
        client_ip: Optional[str] = None
    ) -> Tuple[UserSession, bool]:
        """Create the (user, event) session or refresh it. Returns (session, is_new)."""
        existing = self.find_session(user_id, event_id)
        if existing is not None:
            return self._refresh_session(existing, client_ip), False

        session = UserSession(
            user_id=user_id,
            event_id=event_id,
            client_ip=client_ip,
            last_seen=utcnow(),
            request_count=0
        )
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent first join for the same pair
            self.db.rollback()
            existing = self.find_session(user_id, event_id)
            if existing is None:
                raise NotFoundError("User or event no longer exists", ErrorCode.EVENT_NOT_FOUND) from e
            return self._refresh_session(existing, client_ip), False
        self.db.refresh(session)
        return session, True

    @_store_call
    def increment_session_count(self, session_id: int) -> Optional[UserSession]:
        updated = self.db.query(UserSession).filter(UserSession.id == session_id).update(
            {
                UserSession.request_count: UserSession.request_count + 1,
                UserSession.last_seen: utcnow(),
            },
            synchronize_session=False
        )
        self.db.commit()
        if not updated:
            return None
        return self.get_session(session_id)

    @_store_call
    def reserve_session_slot(self, session_id: int, limit: int) -> bool:
        """Count one request against the session if it is below limit (0 means no limit).

        A single conditional UPDATE, so concurrent callers cannot both take the last slot.
        """
        query = self.db.query(UserSession).filter(UserSession.id == session_id)
        if limit > 0:
            query = query.filter(UserSession.request_count < limit)
        updated = query.update(
            {
                UserSession.request_count: UserSession.request_count + 1,
                UserSession.last_seen: utcnow(),
            },
            synchronize_session=False
        )
        self.db.commit()
        return updated > 0

    @_store_call
    def release_session_slot(self, session_id: int) -> None:
        """Give back a slot taken by reserve_session_slot."""
        self.db.query(UserSession).filter(
            UserSession.id == session_id,
            UserSession.request_count > 0
        ).update(
            {UserSession.request_count: UserSession.request_count - 1},
            synchronize_session=False
        )
        self.db.commit()

    @_store_call
    def touch_session(self, session_id: int) -> Optional[UserSession]:
        updated = self.db.query(UserSession).filter(UserSession.id == session_id).update(
            {UserSession.last_seen: utcnow()},
            synchronize_session=False
        )
        self.db.commit()
        if not updated:
            return None
        return self.get_session(session_id)

    @_store_call
    def delete_session(self, session: UserSession) -> None:
        self.db.delete(session)
        self.db.commit()

    @_store_call
    def delete_sessions_seen_before(self, cutoff: datetime) -> int:
        deleted = self.db.query(UserSession).filter(
            UserSession.last_seen < cutoff
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    @_store_call
    def count_active_sessions(self, event_id: int, since: datetime) -> int:
        return self.db.query(func.count(UserSession.id)).filter(
            UserSession.event_id == event_id,
            UserSession.last_seen > since
        ).scalar() or 0

    @_store_call
    def active_sessions(self, event_id: int, since: datetime) -> List[Tuple[UserSession, str]]:
        rows = self.db.query(UserSession, User.username).join(
            User, User.id == UserSession.user_id
        ).filter(
            UserSession.event_id == event_id,
            UserSession.last_seen > since
        ).order_by(UserSession.last_seen.desc()).all()
        return [(row[0], row[1]) for row in rows]

    # Aggregates

    @_store_call
    def ranked_requests(
        self,
        event_id: int,
        status: Optional[RequestStatus] = None,
        limit: Optional[int] = None,
        newest_first: bool = False
    ) -> List[RankedRequest]:
        """Requests of an event with fresh vote counts.

        Default order is vote count desc, then created_at asc, then id asc.
        With newest_first the order is created_at desc, then id desc.
        """
        vote_counts = self.db.query(
            Vote.request_id.label("request_id"),
            func.count(Vote.id).label("vote_count")
        ).group_by(Vote.request_id).subquery()
        count_col = func.coalesce(vote_counts.c.vote_count, 0)

        query = self.db.query(SongRequest, User.username, count_col).join(
            User, User.id == SongRequest.user_id
        ).outerjoin(
            vote_counts, vote_counts.c.request_id == SongRequest.id
        ).filter(SongRequest.event_id == event_id)

        if status is not None:
            query = query.filter(SongRequest.status == status)

        if newest_first:
            query = query.order_by(SongRequest.created_at.desc(), SongRequest.id.desc())
        else:
            query = query.order_by(count_col.desc(), SongRequest.created_at.asc(), SongRequest.id.asc())

        if limit is not None:
            query = query.limit(limit)

        return [
            RankedRequest(request=row[0], requester=row[1], vote_count=int(row[2]))
            for row in query.all()
        ]

    @_store_call
    def request_counts_by_status(self, event_ids: Iterable[int]) -> Dict[int, Dict[RequestStatus, int]]:
        event_ids = list(event_ids)
        counts: Dict[int, Dict[RequestStatus, int]] = {
            event_id: {status: 0 for status in RequestStatus} for event_id in event_ids
        }
        if not event_ids:
            return counts
        rows = self.db.query(
            SongRequest.event_id, SongRequest.status, func.count(SongRequest.id)
        ).filter(
            SongRequest.event_id.in_(event_ids)
        ).group_by(SongRequest.event_id, SongRequest.status).all()
        for event_id, status, count in rows:
            counts[event_id][status] = count
        return counts

    @_store_call
    def total_votes_by_event(self, event_ids: Iterable[int]) -> Dict[int, int]:
        event_ids = list(event_ids)
        totals = {event_id: 0 for event_id in event_ids}
        if not event_ids:
            return totals
        rows = self.db.query(SongRequest.event_id, func.count(Vote.id)).join(
            Vote, Vote.request_id == SongRequest.id
        ).filter(
            SongRequest.event_id.in_(event_ids)
        ).group_by(SongRequest.event_id).all()
        for event_id, count in rows:
            totals[event_id] = count
        return totals
