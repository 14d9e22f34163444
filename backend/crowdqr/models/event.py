"""
Event model for a DJ-hosted live session.
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer
from sqlalchemy.orm import relationship
from crowdqr.db.base import BaseModel


class Event(BaseModel):
    """Event owned by exactly one DJ and addressed publicly by its slug."""
    __tablename__ = "events"

    dj_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    dj = relationship("User", back_populates="hosted_events")
    requests = relationship("SongRequest", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("UserSession", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)
