"""
Vote model joining a user to a song request.
"""
from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from crowdqr.db.base import BaseModel


class Vote(BaseModel):
    """Immutable endorsement of a request. Rows are only inserted or deleted."""
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "request_id", name="one_vote_per_user"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("song_requests.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="votes")
    request = relationship("SongRequest", back_populates="votes")
