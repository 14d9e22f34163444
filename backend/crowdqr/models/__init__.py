"""Models package - Import all models for SQLAlchemy registration."""
from crowdqr.models.user import User, UserRole
from crowdqr.models.event import Event
from crowdqr.models.song_request import SongRequest, RequestStatus
from crowdqr.models.vote import Vote
from crowdqr.models.user_session import UserSession

__all__ = [
    "User",
    "UserRole",
    "Event",
    "SongRequest",
    "RequestStatus",
    "Vote",
    "UserSession",
]
