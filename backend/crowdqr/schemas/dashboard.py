"""
Pydantic schemas for the DJ dashboard.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from crowdqr.models.song_request import RequestStatus


class TopRequest(BaseModel):
    """Request row ranked by votes."""
    request_id: int
    song_name: str
    artist_name: Optional[str] = None
    requester: str
    status: RequestStatus
    vote_count: int
    created_at: datetime


class ActiveUser(BaseModel):
    user_id: int
    username: str
    last_seen: datetime


class EventSummary(BaseModel):
    """Live summary of one event, computed at request time."""
    event_id: int
    total_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
    total_votes: int
    active_users: int
    top_requests: List[TopRequest] = []
    recently_approved: List[TopRequest] = []
    recently_rejected: List[TopRequest] = []
    active_users_list: List[ActiveUser] = []


class RequestCounts(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class DjEventStat(BaseModel):
    """Per-event totals for one DJ."""
    event_id: int
    name: str
    slug: str
    is_active: bool
    created_at: datetime
    request_counts: RequestCounts
    total_votes: int
