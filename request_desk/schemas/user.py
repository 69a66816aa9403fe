# ruff: noqa: TC003
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from request_desk.models.enums import UserRole


class LoginPayload(BaseModel):
    """Request body for logging in with email and password."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RegisterPayload(BaseModel):
    """Request body for auto-registering a user on first login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    role: UserRole = UserRole.MANAGER
    department: str | None = Field(default=None, max_length=255)


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password."""

    user_id: str
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    role: UserRole
    department: str | None
    is_active: bool
    created_at: datetime


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
