from __future__ import annotations

from sqlmodel import Field

from request_desk.models.base import TimestampMixin
from request_desk.models.enums import UserRole


class User(TimestampMixin, table=True):
    """An employee or manager account. The password is stored and compared as plaintext."""

    __tablename__ = "app_user"

    user_id: str = Field(primary_key=True, max_length=100)
    username: str = Field(max_length=255, unique=True)
    email: str = Field(max_length=255, unique=True)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    role: str = Field(default=UserRole.USER, max_length=20)
    password: str = Field(max_length=255)
    department: str | None = Field(default=None, max_length=255)
    is_active: bool = True
