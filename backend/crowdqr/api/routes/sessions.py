"""
Session routes: join an event, refresh presence, inspect and end sessions.
"""
import logging
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import List
from crowdqr.api.dependencies import get_current_dj, get_current_user, get_notifier, RecordId
from crowdqr.core.exceptions import EventNotFoundError
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.models.user import User
from crowdqr.schemas.session import SessionJoin, SessionJoinResponse, SessionResponse
from crowdqr.services import crowd_service, session_service
from crowdqr.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionJoinResponse)
async def join_event(
    join_data: SessionJoin,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
):
    """
    Join an event or refresh an existing session.

    Answers 201 with is_new=true the first time a user joins an event and 200
    with is_new=false on every later call.
    """
    client_ip = join_data.client_ip or (request.client.host if request.client else None)
    session, is_new = await crowd_service.join_event(
        db, notifier, current_user, join_data.user_id, join_data.event_id, client_ip
    )
    response.status_code = status.HTTP_201_CREATED if is_new else status.HTTP_200_OK
    return SessionJoinResponse(
        **SessionResponse.model_validate(session).model_dump(),
        is_new=is_new
    )


@router.get("/event/{event_id}", response_model=List[SessionResponse])
async def list_event_sessions(
    event_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """All sessions of an event, most recently seen first."""
    store = Store(db)
    if not store.event_exists(event_id):
        raise EventNotFoundError(event_id)
    return store.sessions_for_event(event_id)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = session_service.get_session(db, session_id)
    crowd_service.authorize_session_access(current_user, session)
    return session


@router.put("/{session_id}/increment-request-count", response_model=SessionResponse)
async def increment_request_count(
    session_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = session_service.get_session(db, session_id)
    crowd_service.authorize_session_access(current_user, session)
    return session_service.increment_request_count(db, session_id)


@router.put("/{session_id}/refresh", response_model=SessionResponse)
async def refresh_session(
    session_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Keep a session active without counting a request."""
    session = session_service.get_session(db, session_id)
    crowd_service.authorize_session_access(current_user, session)
    return session_service.touch(db, session_id)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    session_service.end_session(db, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
