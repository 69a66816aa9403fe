# ruff: noqa: TC003
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from request_desk.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase, now_utc
from request_desk.models.enums import RequestStatus


class ApprovalRequest(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """A travel, vacation or equipment request and its approval state.

    The three variants share one table; ``request_type`` is the tag and the
    variant-specific columns are nullable.
    """

    __tablename__ = "approval_request"
    __table_args__ = (
        sa.Index("ix_request_manager_status", "manager_id", "status"),
        sa.Index("ix_request_submitted_date", "submitted_date"),
    )

    request_id: str = Field(max_length=100, unique=True)
    request_type: str = Field(max_length=20, index=True)
    status: str = Field(
        default=RequestStatus.PENDING_APPROVAL,
        max_length=50,
        index=True,
        sa_column_kwargs={"server_default": "PENDING_APPROVAL"},
    )
    submitted_date: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    approved_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    approved_by: str | None = Field(default=None, max_length=255)
    rejection_reason: str | None = None

    manager_id: str = Field(
        sa_column=sa.Column(sa.String(100), sa.ForeignKey("manager.manager_id"), nullable=False, index=True),
    )
    user_id: str | None = Field(default=None, max_length=100, index=True)

    # Travel
    submitted_by: str | None = Field(default=None, max_length=255)
    submitted_by_email: str | None = Field(default=None, max_length=255)
    destination: str | None = Field(default=None, max_length=255)
    duration: str | None = Field(default=None, max_length=100)

    # Travel and vacation
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None

    # Vacation
    vacation_type: str | None = Field(default=None, max_length=50)
    substitute_id: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(100), sa.ForeignKey("app_user.user_id"), nullable=True),
    )

    # Equipment
    total_cost: Decimal | None = Field(default=None, sa_type=sa.Numeric(12, 2))  # ty: ignore[invalid-argument-type]
