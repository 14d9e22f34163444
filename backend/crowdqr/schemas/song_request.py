"""
Pydantic schemas for song requests.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from crowdqr.core.utils import MAX_ID
from crowdqr.models.song_request import RequestStatus


class SongRequestCreate(BaseModel):
    """Schema for request submission."""
    user_id: int = Field(..., le=MAX_ID)
    event_id: int = Field(..., le=MAX_ID)
    song_name: str = Field(..., min_length=1, max_length=255)
    artist_name: Optional[str] = Field(None, max_length=255)


class RequestStatusUpdate(BaseModel):
    status: RequestStatus


class RequestVoteItem(BaseModel):
    id: int
    user_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class SongRequestResponse(BaseModel):
    """Schema for request response; vote_count is counted, never stored."""
    id: int
    user_id: int
    event_id: int
    song_name: str
    artist_name: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    vote_count: int = 0


class SongRequestDetailResponse(SongRequestResponse):
    votes: List[RequestVoteItem] = []
