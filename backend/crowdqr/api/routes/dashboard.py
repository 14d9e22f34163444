"""
DJ dashboard routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from crowdqr.api.dependencies import get_current_dj, RecordId
from crowdqr.core.utils import MAX_ID
from crowdqr.db.session import get_db
from crowdqr.models.song_request import RequestStatus
from crowdqr.models.user import User
from crowdqr.schemas.dashboard import DjEventStat, EventSummary, TopRequest
from crowdqr.services import dashboard_service
from crowdqr.services.crowd_service import authorize_self_or_dj

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/event/{event_id}/summary", response_model=EventSummary)
async def event_summary(
    event_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Request counts, vote total, active users and ranked lists for an event."""
    return dashboard_service.summary(db, event_id)


@router.get("/event/{event_id}/top-requests", response_model=List[TopRequest])
async def top_requests(
    event_id: RecordId,
    status: RequestStatus = RequestStatus.PENDING,
    count: Optional[int] = Query(None, le=MAX_ID),
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    """Most voted requests of an event with the given status."""
    return dashboard_service.top_requests(db, event_id, status=status, limit=count)


@router.get("/dj/{dj_user_id}/event-stats", response_model=List[DjEventStat])
async def dj_event_stats(
    dj_user_id: RecordId,
    current_user: User = Depends(get_current_dj),
    db: Session = Depends(get_db)
):
    authorize_self_or_dj(current_user, dj_user_id)
    return dashboard_service.dj_event_stats(db, dj_user_id)
