from __future__ import annotations

from sqlmodel import Field

from request_desk.models.base import TimestampMixin


class Manager(TimestampMixin, table=True):
    """Approving manager. ``manager_id`` may coincide with a ``User.user_id``."""

    __tablename__ = "manager"

    manager_id: str = Field(primary_key=True, max_length=100)
    manager_name: str = Field(max_length=255)
    email: str | None = Field(default=None, max_length=255, index=True)
    department: str | None = Field(default=None, max_length=255)
