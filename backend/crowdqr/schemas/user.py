"""
Pydantic schemas for User entity and authentication.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from crowdqr.models.user import UserRole


class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    username: str
    email: Optional[EmailStr] = None
    role: UserRole
    is_email_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserLogin(BaseModel):
    """Audience members log in with a username only; DJs also send a password."""
    username: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = None


class DjRegister(BaseModel):
    """Schema for DJ registration."""
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
