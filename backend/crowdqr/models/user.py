"""
User model for audience members and DJs.
"""
from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
from crowdqr.db.base import BaseModel
import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    AUDIENCE = "Audience"
    DJ = "DJ"


class User(BaseModel):
    """User model; audience accounts have no password, DJ accounts always do."""
    __tablename__ = "users"

    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    hashed_password = Column(String(255), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.AUDIENCE, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)

    # Relationships
    hosted_events = relationship("Event", back_populates="dj")
    requests = relationship("SongRequest", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    votes = relationship("Vote", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_dj(self) -> bool:
        return self.role == UserRole.DJ
