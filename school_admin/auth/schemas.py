from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from school_admin.core.enums import UserRole
from school_admin.core.schemas import CamelModel


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.TEACHER
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class UserInfo(CamelModel):
    """Identity summary embedded in auth responses."""

    id: int
    username: str
    email: EmailStr
    role: UserRole
    full_name: Optional[str] = None


class UserProfile(UserInfo):
    """Full identity without the credential hash (GET /auth/me)."""

    phone: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    success: bool = True
    token: str
    user: UserInfo


class CurrentUser(CamelModel):
    """Lightweight representation of the authenticated user for RBAC checks."""

    id: int
    email: str
    role: UserRole
