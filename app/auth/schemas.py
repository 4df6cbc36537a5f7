from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.auth.models import UserRole


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 900  # 15 minutes in seconds


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None
    role: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LoginResponse(Token):
    """Login response with the caller's role so the client can hide admin actions."""
    role: str
    is_admin: bool


class UserLogin(BaseModel):
    email: str
    password: str


class ProfileRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole = UserRole.MEMBER
    password: str = Field(min_length=8)


class Identity(BaseModel):
    """Who is calling, as far as the registrant endpoints care."""
    profile_id: Optional[int] = None
    is_authenticated: bool = False
    has_admin_capability: bool = False
