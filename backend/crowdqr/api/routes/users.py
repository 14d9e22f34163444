"""
User lookup routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from crowdqr.api.dependencies import get_current_user, RecordId
from crowdqr.core.exceptions import UserNotFoundError
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.models.user import User
from crowdqr.schemas.user import UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get user by ID."""
    user = Store(db).get_user(user_id)
    if not user:
        raise UserNotFoundError(user_id)
    return user
