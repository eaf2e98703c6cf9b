"""Pydantic schemas for authentication."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request schema."""

    email: str = Field(..., min_length=3, description="Account email address")
    password: str = Field(..., min_length=1, description="Password")


class RegisterRequest(BaseModel):
    """Self-service account registration."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Password (minimum 8 characters)")
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field("", max_length=255)
    department: Optional[str] = Field(None, max_length=255)


class UserResponse(BaseModel):
    """User response schema (for /me endpoint)."""

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    department: Optional[str] = None
    role: str
    is_active: bool

    model_config = {
        "from_attributes": True
    }


class LoginResponse(BaseModel):
    """
    Login response schema.

    The token is also set as an HttpOnly cookie; API clients send it back
    as `Authorization: Bearer <token>`.
    """

    message: str
    user: UserResponse
    token: str
    expires_at: datetime


class LogoutResponse(BaseModel):
    """Logout response schema."""

    message: str


class PasswordChangeRequest(BaseModel):
    """Password change request schema."""

    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=8, description="New password (minimum 8 characters)")


class PasswordChangeResponse(BaseModel):
    """Password change response schema."""

    message: str
