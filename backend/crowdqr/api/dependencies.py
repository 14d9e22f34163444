"""
Shared route dependencies: current user, DJ guard, live notifications.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, Path, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from crowdqr.core.security import decode_access_token
from crowdqr.core.utils import MAX_ID
from crowdqr.db.session import get_db
from crowdqr.models.user import User
from crowdqr.services.broadcast_service import EventBroadcaster
from crowdqr.services.notification_service import NotificationService

bearer_scheme = HTTPBearer(auto_error=False)

# Path id bounded to what a 64-bit INTEGER column holds
RecordId = Annotated[int, Path(le=MAX_ID)]


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to a user."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or "user_id" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = db.query(User).filter(User.id == payload["user_id"]).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists"
        )
    return user


def get_current_dj(current_user: User = Depends(get_current_user)) -> User:
    """Require the DJ role."""
    if not current_user.is_dj:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="DJ role required"
        )
    return current_user


def get_broadcaster(request: Request) -> EventBroadcaster:
    """The process-wide broadcaster created at startup."""
    return request.app.state.broadcaster


def get_notifier(broadcaster: EventBroadcaster = Depends(get_broadcaster)) -> NotificationService:
    return NotificationService(broadcaster)
