# app/users/schemas.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class TokenResponse(BaseModel):
    """Schema for token response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    """Schema for login request."""
    email_id: EmailStr
    password: str


class UserBase(BaseModel):
    """Base schema for user."""
    email_address: EmailStr
    name: str = Field(..., min_length=3, max_length=120)


class UserCreate(UserBase):
    """Schema for creating a new user."""
    password: str = Field(..., min_length=4, max_length=120)
    is_admin: bool = False


class UserCreatedEvent(BaseModel):
    """Payload of the "create user" event published on the message bus."""
    name: str = Field(..., min_length=3, max_length=120)
    email: EmailStr
    password: Optional[str] = Field(None, max_length=120)
    is_admin: bool = False
    active: bool = True


class UserResponse(UserBase):
    """Schema for user response."""
    id: int
    is_admin: bool
    is_active: bool
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaginatedUserResponse(BaseModel):
    """Schema for a paginated list of users."""
    items: List[UserResponse]
    total_items: int
    page: int
    per_page: int
    total_pages: int
