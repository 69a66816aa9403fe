from __future__ import annotations

from pydantic import BaseModel

from request_desk.models.enums import UserRole


class AuthContext(BaseModel):
    """Acting user taken from request headers."""

    user_id: str
    role: UserRole = UserRole.USER
