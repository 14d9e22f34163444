"""
Pydantic schemas for votes.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from crowdqr.core.utils import MAX_ID


class VoteCreate(BaseModel):
    user_id: int = Field(..., le=MAX_ID)
    request_id: int = Field(..., le=MAX_ID)


class VoteResponse(BaseModel):
    id: int
    user_id: int
    request_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class VoteCountResponse(BaseModel):
    """Outcome of a cast or removal: the request's vote count afterwards."""
    request_id: int
    event_id: int
    user_id: int
    vote_count: int
