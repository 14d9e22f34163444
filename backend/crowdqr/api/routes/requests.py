"""
Song request routes: submit, list, triage and delete.
"""
import logging
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
from crowdqr.api.dependencies import get_current_dj, get_current_user, get_notifier, RecordId
from crowdqr.core.exceptions import EventNotFoundError, RequestNotFoundError
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.models.song_request import SongRequest
from crowdqr.models.user import User
from crowdqr.schemas.song_request import (
    RequestStatusUpdate,
    RequestVoteItem,
    SongRequestCreate,
    SongRequestDetailResponse,
    SongRequestResponse,
)
from crowdqr.services import crowd_service
from crowdqr.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"])


def to_response(request: SongRequest, vote_count: int) -> SongRequestResponse:
    return SongRequestResponse(
        id=request.id,
        user_id=request.user_id,
        event_id=request.event_id,
        song_name=request.song_name,
        artist_name=request.artist_name,
        status=request.status,
        created_at=request.created_at,
        vote_count=vote_count
    )


@router.post("", response_model=SongRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    request_data: SongRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
):
    """Submit a song request. It starts out Pending with no votes."""
    request = await crowd_service.submit_request(
        db,
        notifier,
        current_user,
        user_id=request_data.user_id,
        event_id=request_data.event_id,
        song_name=request_data.song_name,
        artist_name=request_data.artist_name
    )
    return to_response(request, 0)


@router.get("/event/{event_id}", response_model=List[SongRequestResponse])
async def list_event_requests(event_id: RecordId, db: Session = Depends(get_db)):
    """All requests of an event, most votes first."""
    store = Store(db)
    if not store.event_exists(event_id):
        raise EventNotFoundError(event_id)
    return [to_response(r.request, r.vote_count) for r in store.ranked_requests(event_id)]


@router.get("/{request_id}", response_model=SongRequestDetailResponse)
async def get_request(request_id: RecordId, db: Session = Depends(get_db)):
    """Get a request with its votes."""
    store = Store(db)
    found = store.get_request_with_votes(request_id)
    if found is None:
        raise RequestNotFoundError(request_id)

    votes = [RequestVoteItem.model_validate(v) for v in store.list_votes(request_id)]
    return SongRequestDetailResponse(
        **to_response(found.request, found.vote_count).model_dump(),
        votes=votes
    )


@router.put("/{request_id}/status", response_model=SongRequestResponse)
async def update_request_status(
    request_id: RecordId,
    status_data: RequestStatusUpdate,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
):
    """Approve, reject or reopen a request."""
    request = await crowd_service.change_request_status(
        db, notifier, current_user, request_id, status_data.status
    )
    return to_response(request, Store(db).count_votes(request.id))


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Delete a request and its votes."""
    crowd_service.delete_request(db, current_user, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
