# ruff: noqa: TC003
from __future__ import annotations

from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from request_desk.models.base import TimestampMixin, UUIDBase


class Availability(UUIDBase, TimestampMixin, table=True):
    """A date range during which a user is unavailable."""

    __tablename__ = "availability"
    __table_args__ = (sa.Index("ix_availability_user_period", "user_id", "start_date", "end_date"),)

    user_id: str = Field(max_length=100)
    start_date: date
    end_date: date
    availability_type: str = Field(max_length=20)
    reason: str | None = None
