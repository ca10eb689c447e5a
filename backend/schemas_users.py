"""
backend/schemas_users.py

Pydantic schemas for auth, profile and the admin surface.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from backend.models import UserRole
from backend.schemas_projects import ProjectResponse, UserSummary, strip_text


PASSWORD_MIN_LENGTH = 6


def _check_email_shape(v):
    """Minimal shape check; deliverability is not verified."""
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("email must be a valid address")
    return v


# ========================================================================
# AUTH SCHEMAS
# ========================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)

    @field_validator("name", "email", mode="before")
    @classmethod
    def trim_text(cls, v):
        return strip_text(v)

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v):
        return _check_email_shape(v)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSummary


class ProfileUpdateRequest(BaseModel):
    """
    Absent or empty fields keep their current value (whitespace-only counts
    as empty). Anything non-empty gets the same checks as registration.
    """
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    password: Optional[str] = Field(None, max_length=128)

    @field_validator("name", "email", mode="before")
    @classmethod
    def trim_text(cls, v):
        return strip_text(v)

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v):
        if not v:
            return v
        return _check_email_shape(v)

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v):
        if v and len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"password must be at least {PASSWORD_MIN_LENGTH} characters")
        return v


# ========================================================================
# ADMIN SCHEMAS
# ========================================================================

class RoleUpdateRequest(BaseModel):
    role: UserRole


class UserListResponse(BaseModel):
    count: int = 0
    users: List[UserSummary] = Field(default_factory=list)


class GroupCount(BaseModel):
    key: Optional[str] = None
    count: int


class DashboardTotals(BaseModel):
    users: int
    projects: int
    tasks: int


class DashboardRecent(BaseModel):
    users: List[UserSummary] = Field(default_factory=list)
    projects: List[ProjectResponse] = Field(default_factory=list)


class DashboardResponse(BaseModel):
    totals: DashboardTotals
    tasks_by_status: List[GroupCount] = Field(default_factory=list)
    projects_by_status: List[GroupCount] = Field(default_factory=list)
    tasks_by_priority: List[GroupCount] = Field(default_factory=list)
    users_by_role: List[GroupCount] = Field(default_factory=list)
    recent: DashboardRecent
