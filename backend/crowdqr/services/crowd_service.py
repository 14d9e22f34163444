"""
Crowd actions: the one place where authorization, the store, the vote and
session services and live notifications meet.

Every mutating action runs: authorize, check referenced rows exist, mutate,
then broadcast a payload built from the rows as they are after the mutation.
A failed broadcast is logged and never reported as a failed action: the
write is already committed and clients recover by re-fetching.
"""
import logging
from typing import Awaitable, Optional, Tuple
from sqlalchemy.orm import Session
from crowdqr.core.exceptions import (
    BroadcastDeliveryError,
    EventNotFoundError,
    ForbiddenError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationFailedError,
)
from crowdqr.db.store import Store
from crowdqr.models.event import Event
from crowdqr.models.song_request import RequestStatus, SongRequest
from crowdqr.models.user import User
from crowdqr.models.user_session import UserSession
from crowdqr.services import session_service, vote_service
from crowdqr.services.notification_service import NotificationService
from crowdqr.services.vote_service import VoteTally

logger = logging.getLogger(__name__)


def authorize_self_or_dj(actor: User, user_id: int) -> None:
    """Audience members act only as themselves; DJs may act for anyone."""
    if actor.id != user_id and not actor.is_dj:
        logger.warning(f"User {actor.id} tried to act as user {user_id}")
        raise ForbiddenError("You can only act on your own behalf")


def authorize_event_owner(actor: User, event: Event) -> None:
    if not actor.is_dj or event.dj_user_id != actor.id:
        logger.warning(f"User {actor.id} tried to manage event {event.id} owned by DJ {event.dj_user_id}")
        raise ForbiddenError("Only the DJ hosting this event can do that")


async def _broadcast(event_type: str, event_id: int, notification: Awaitable) -> None:
    try:
        await notification
    except Exception as e:
        error = BroadcastDeliveryError(event_type, event_id, e)
        logger.error(str(error), exc_info=True)


async def submit_request(
    db: Session,
    notifier: NotificationService,
    actor: User,
    user_id: int,
    event_id: int,
    song_name: str,
    artist_name: Optional[str] = None
) -> SongRequest:
    """Create a Pending request and announce it to the event group."""
    authorize_self_or_dj(actor, user_id)

    store = Store(db)
    event = store.get_event(event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    user = store.get_user(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    if not event.is_active:
        raise ValidationFailedError("Event is not accepting requests")

    song_name = (song_name or "").strip()
    artist_name = artist_name.strip() if artist_name else None
    if not song_name:
        raise ValidationFailedError("Song name is required")

    session_id = session_service.reserve_request_slot(db, user_id, event_id)

    try:
        request = store.insert_request(user_id, event_id, song_name, artist_name or None)
    except Exception:
        if session_id is not None:
            session_service.release_request_slot(db, session_id)
        raise

    await _broadcast(
        "requestAdded",
        request.event_id,
        notifier.notify_request_added(request.event_id, request.id, request.user.username)
    )
    logger.info(f"Request {request.id} created in event {request.event_id} by user {request.user_id}")
    return request


async def change_request_status(
    db: Session,
    notifier: NotificationService,
    actor: User,
    request_id: int,
    status: RequestStatus
) -> SongRequest:
    """Set the status of a request. Only the hosting DJ may triage."""
    store = Store(db)
    request = store.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    authorize_event_owner(actor, request.event)

    old_status = request.status
    request = store.set_request_status(request, status)

    await _broadcast(
        "requestStatusUpdated",
        request.event_id,
        notifier.notify_request_status_updated(request.event_id, request.id, request.status.value)
    )
    logger.info(f"Request {request.id} status changed from {old_status.value} to {request.status.value}")
    return request


def delete_request(db: Session, actor: User, request_id: int) -> None:
    """Hard-delete a request and its votes."""
    store = Store(db)
    request = store.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    authorize_event_owner(actor, request.event)
    store.delete_request(request)
    logger.info(f"Request {request_id} deleted by DJ {actor.id}")


async def vote(
    db: Session,
    notifier: NotificationService,
    actor: User,
    user_id: int,
    request_id: int
) -> VoteTally:
    """Cast a vote and announce the new count."""
    authorize_self_or_dj(actor, user_id)
    tally = vote_service.cast_vote(db, user_id, request_id)
    await _broadcast(
        "voteAdded",
        tally.event_id,
        notifier.notify_vote_added(tally.event_id, tally.request_id, tally.vote_count, tally.user_id)
    )
    return tally


async def unvote(
    db: Session,
    notifier: NotificationService,
    actor: User,
    user_id: int,
    request_id: int
) -> VoteTally:
    """Withdraw a vote and announce the new count."""
    authorize_self_or_dj(actor, user_id)
    tally = vote_service.remove_vote(db, user_id, request_id)
    await _broadcast(
        "voteRemoved",
        tally.event_id,
        notifier.notify_vote_removed(tally.event_id, tally.request_id, tally.vote_count)
    )
    return tally


async def join_event(
    db: Session,
    notifier: NotificationService,
    actor: User,
    user_id: int,
    event_id: int,
    client_ip: Optional[str] = None
) -> Tuple[UserSession, bool]:
    """Open or refresh the user's session; only a first join is announced."""
    authorize_self_or_dj(actor, user_id)
    session, is_new = session_service.join_or_refresh(db, user_id, event_id, client_ip)
    if is_new:
        await _broadcast(
            "userJoinedEvent",
            session.event_id,
            notifier.notify_user_joined_event(session.event_id, session.user.username)
        )
    return session, is_new


def authorize_session_access(actor: User, session: UserSession) -> None:
    authorize_self_or_dj(actor, session.user_id)
