"""
Pydantic schemas for event sessions.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from crowdqr.core.utils import MAX_ID


class SessionJoin(BaseModel):
    """Join an event or refresh presence. client_ip defaults to the caller's address."""
    user_id: int = Field(..., le=MAX_ID)
    event_id: int = Field(..., le=MAX_ID)
    client_ip: Optional[str] = Field(None, max_length=45)


class SessionResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    client_ip: Optional[str] = None
    last_seen: datetime
    request_count: int

    class Config:
        from_attributes = True


class SessionJoinResponse(SessionResponse):
    is_new: bool
