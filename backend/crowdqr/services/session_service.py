"""
Session tracking for presence ("active users") and per-event request limits.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from crowdqr.core.config import settings
from crowdqr.core.exceptions import (
    EventNotFoundError,
    RequestLimitError,
    SessionNotFoundError,
    UserNotFoundError,
)
from crowdqr.core.utils import utcnow
from crowdqr.db.store import Store
from crowdqr.models.user_session import UserSession

logger = logging.getLogger(__name__)


def active_since(now: Optional[datetime] = None) -> datetime:
    """Oldest last_seen that still counts as active."""
    now = now or utcnow()
    return now - timedelta(minutes=settings.ACTIVE_USER_WINDOW_MINUTES)


def join_or_refresh(
    db: Session,
    user_id: int,
    event_id: int,
    client_ip: Optional[str] = None
) -> Tuple[UserSession, bool]:
    """
    Create the session for (user_id, event_id) or refresh its last_seen.

    Returns (session, is_new). is_new is True for exactly one caller per pair,
    even when first joins race; it drives the "user joined" notification.
    """
    store = Store(db)
    if not store.user_exists(user_id):
        raise UserNotFoundError(user_id)
    if not store.event_exists(event_id):
        raise EventNotFoundError(event_id)

    session, is_new = store.upsert_session(user_id, event_id, client_ip)
    if is_new:
        logger.info(f"User {user_id} joined event {event_id} (session {session.id})")
    return session, is_new


def get_session(db: Session, session_id: int) -> UserSession:
    session = Store(db).get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def increment_request_count(db: Session, session_id: int) -> UserSession:
    """Bump the request counter and last_seen atomically."""
    session = Store(db).increment_session_count(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def touch(db: Session, session_id: int) -> UserSession:
    """Refresh last_seen without counting a request."""
    session = Store(db).touch_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def end_session(db: Session, session_id: int) -> None:
    store = Store(db)
    session = store.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    store.delete_session(session)
    logger.info(f"Session {session_id} ended")


def reserve_request_slot(db: Session, user_id: int, event_id: int) -> Optional[int]:
    """
    Count a request against the user's session for the event before it is stored.

    The count and the limit check are one conditional update, so concurrent
    submitters cannot overshoot MAX_REQUESTS_PER_SESSION. Returns the session id
    (None when the user has not joined) so a failed insert can release the slot.
    """
    store = Store(db)
    session = store.find_session(user_id, event_id)
    if session is None:
        return None
    session_id = session.id

    limit = settings.MAX_REQUESTS_PER_SESSION
    if not store.reserve_session_slot(session_id, limit):
        if store.get_session(session_id) is None:
            # Ended between the lookup and the update; nothing to count against
            return None
        logger.warning(f"User {user_id} hit the request limit ({limit}) for event {event_id}")
        raise RequestLimitError(limit)
    return session_id


def release_request_slot(db: Session, session_id: int) -> None:
    Store(db).release_session_slot(session_id)
    logger.info(f"Released request slot of session {session_id}")


def count_active_users(db: Session, event_id: int, now: Optional[datetime] = None) -> int:
    return Store(db).count_active_sessions(event_id, active_since(now))


def active_sessions(db: Session, event_id: int, now: Optional[datetime] = None) -> List[Tuple[UserSession, str]]:
    """Active sessions of an event paired with the username, most recent first."""
    return Store(db).active_sessions(event_id, active_since(now))


def purge_stale_sessions(db: Session, older_than_hours: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """Delete sessions not seen for older_than_hours. Active-user counts are unaffected."""
    hours = older_than_hours if older_than_hours is not None else settings.STALE_SESSION_HOURS
    now = now or utcnow()
    # Never reach into the active window
    cutoff = min(now - timedelta(hours=hours), active_since(now))
    deleted = Store(db).delete_sessions_seen_before(cutoff)
    logger.info(f"Purged {deleted} sessions not seen since {cutoff.isoformat()}")
    return deleted
