"""Authentication schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from app.models.user import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    """User response"""
    id: UUID
    email: str
    full_name: Optional[str]
    phone: Optional[str]
    role: UserRole
    branch_id: Optional[UUID]
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True
