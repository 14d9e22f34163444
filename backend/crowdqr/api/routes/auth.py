"""
Authentication routes: audience login, DJ login and DJ registration.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from crowdqr.core.exceptions import ConflictError
from crowdqr.core.security import verify_password, get_password_hash, create_user_token
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.models.user import User, UserRole
from crowdqr.schemas.user import DjRegister, Token, UserLogin, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Log in and get a JWT.

    An unknown username without a password creates an Audience account on the
    spot. DJ accounts (matched by username or email) require their password.
    """
    store = Store(db)
    user = db.query(User).filter(
        or_(User.username == credentials.username, User.email == credentials.username)
    ).first()

    if user is None:
        if credentials.password:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password"
            )
        try:
            user = store.insert_user(credentials.username, role=UserRole.AUDIENCE)
            logger.info(f"Created audience user {user.username}")
        except ConflictError:
            # Another first login for the same name won the insert
            user = store.get_user_by_username(credentials.username)
    elif user.is_dj:
        if not credentials.password:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Password is required for DJ accounts"
            )
        if not verify_password(credentials.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password"
            )

    return {"access_token": create_user_token(user), "token_type": "bearer", "user": user}


@router.post("/register-dj", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_dj(registration: DjRegister, db: Session = Depends(get_db)):
    """Register a DJ account."""
    user = Store(db).insert_user(
        registration.username,
        role=UserRole.DJ,
        email=registration.email,
        hashed_password=get_password_hash(registration.password)
    )
    logger.info(f"Registered DJ {user.username}")
    return user
