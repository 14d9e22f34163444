"""
Song request model.
"""
from sqlalchemy import Column, String, ForeignKey, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
from crowdqr.db.base import BaseModel
import enum


class RequestStatus(str, enum.Enum):
    """Request status enumeration."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class SongRequest(BaseModel):
    """A song request made by one user for one event.

    The vote count is not a column: it is always counted from the votes table.
    """
    __tablename__ = "song_requests"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    song_name = Column(String(255), nullable=False)
    artist_name = Column(String(255), nullable=True)
    status = Column(SQLEnum(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="requests")
    event = relationship("Event", back_populates="requests")
    votes = relationship("Vote", back_populates="request", cascade="all, delete-orphan", passive_deletes=True)
