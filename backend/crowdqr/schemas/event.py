"""
Pydantic schemas for Event entity.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from crowdqr.models.song_request import RequestStatus

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class EventCreate(BaseModel):
    """Schema for event creation; the hosting DJ is the caller."""
    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    is_active: bool = True


class EventUpdate(BaseModel):
    """Schema for event update."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    is_active: Optional[bool] = None


class EventDj(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    """Schema for event response."""
    id: int
    name: str
    slug: str
    is_active: bool
    created_at: datetime
    dj: EventDj

    class Config:
        from_attributes = True


class EventRequestItem(BaseModel):
    id: int
    song_name: str
    artist_name: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    vote_count: int


class EventDetailResponse(EventResponse):
    """Event with its requests and their vote counts."""
    requests: List[EventRequestItem] = []
