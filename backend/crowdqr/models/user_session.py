"""
Per-(user, event) activity record used for presence and request limits.
"""
from sqlalchemy import Column, String, ForeignKey, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from crowdqr.db.base import BaseModel
from crowdqr.core.utils import utcnow


class UserSession(BaseModel):
    """Session bookkeeping. Active-ness is derived from last_seen, never stored."""
    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="one_session_per_user_event"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    client_ip = Column(String(45), nullable=True)
    last_seen = Column(DateTime, default=utcnow, nullable=False, index=True)
    request_count = Column(Integer, default=0, nullable=False)

    # Relationships
    user = relationship("User", back_populates="sessions")
    event = relationship("Event", back_populates="sessions")
