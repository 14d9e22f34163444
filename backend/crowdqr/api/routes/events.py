"""
Event management routes.
"""
import logging
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
from crowdqr.api.dependencies import get_current_dj, get_current_user, RecordId
from crowdqr.core.exceptions import EventNotFoundError
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.models.event import Event
from crowdqr.models.user import User
from crowdqr.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventDetailResponse, EventRequestItem
)
from crowdqr.services.crowd_service import authorize_event_owner, authorize_self_or_dj

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def event_detail(store: Store, event: Event) -> EventDetailResponse:
    """Event with its requests ranked by votes."""
    requests = [
        EventRequestItem(
            id=ranked.request.id,
            song_name=ranked.request.song_name,
            artist_name=ranked.request.artist_name,
            status=ranked.request.status,
            created_at=ranked.request.created_at,
            vote_count=ranked.vote_count
        )
        for ranked in store.ranked_requests(event.id)
    ]
    return EventDetailResponse(
        **EventResponse.model_validate(event).model_dump(),
        requests=requests
    )


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Create an event hosted by the calling DJ."""
    event = Store(db).insert_event(
        dj_user_id=current_user.id,
        name=event_data.name,
        slug=event_data.slug,
        is_active=event_data.is_active
    )
    logger.info(f"Event created: {event.id} '{event.name}' by DJ {current_user.id}")
    return event


@router.get("", response_model=List[EventResponse])
async def list_events(db: Session = Depends(get_db)):
    """List all events, newest first."""
    return db.query(Event).order_by(Event.created_at.desc(), Event.id.desc()).all()


@router.get("/slug/{slug}", response_model=EventDetailResponse)
async def get_event_by_slug(slug: str, db: Session = Depends(get_db)):
    """Get an event by its public slug."""
    store = Store(db)
    event = store.get_event_by_slug(slug)
    if not event:
        raise EventNotFoundError(slug)
    return event_detail(store, event)


@router.get("/dj/{dj_user_id}", response_model=List[EventResponse])
async def list_dj_events(
    dj_user_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the events hosted by a DJ."""
    authorize_self_or_dj(current_user, dj_user_id)
    events = Store(db).events_for_dj(dj_user_id)
    logger.info(f"Retrieved {len(events)} events for DJ {dj_user_id}")
    return events


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event(event_id: RecordId, db: Session = Depends(get_db)):
    """Get event details with requests and vote counts."""
    store = Store(db)
    event = store.get_event(event_id)
    if not event:
        raise EventNotFoundError(event_id)
    return event_detail(store, event)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: RecordId,
    event_data: EventUpdate,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Update name, slug or active flag. Only the hosting DJ may do this."""
    store = Store(db)
    event = store.get_event(event_id)
    if not event:
        raise EventNotFoundError(event_id)
    authorize_event_owner(current_user, event)

    if event_data.name is not None:
        event.name = event_data.name
    if event_data.slug is not None:
        event.slug = event_data.slug
    if event_data.is_active is not None:
        event.is_active = event_data.is_active

    return store.save_event(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Hard-delete an event with its requests, votes and sessions."""
    store = Store(db)
    event = store.get_event(event_id)
    if not event:
        raise EventNotFoundError(event_id)
    authorize_event_owner(current_user, event)

    store.delete_event(event)
    logger.info(f"Event {event_id} deleted by DJ {current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
