# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from request_desk.models.base import UpdatedAtMixin, UUIDBase, now_utc
from request_desk.models.enums import LineItemStatus


class Attachment(UUIDBase, UpdatedAtMixin, table=True):
    """A supporting file of a travel or vacation request.

    ``category`` names the collection the file belongs to
    (``foodCosts``, ``travelCosts``, ``stayCosts`` or ``attachments``).
    """

    __tablename__ = "attachment"
    __table_args__ = (sa.Index("ix_attachment_request_category", "request_id", "category"),)

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("approval_request.id", ondelete="CASCADE"), nullable=False),
    )
    category: str = Field(max_length=50)
    position: int = 0
    file_name: str = Field(max_length=255)
    file_url: str | None = None
    file_size: int | None = None
    file_type: str | None = Field(default=None, max_length=255)
    description: str = ""
    upload_date: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    status: str = Field(default=LineItemStatus.PENDING, max_length=20)
    rejection_reason: str | None = None


class EquipmentItem(UUIDBase, UpdatedAtMixin, table=True):
    """A purchasable line item of an equipment request."""

    __tablename__ = "equipment_item"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("approval_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    type: str = Field(max_length=100)
    name: str = Field(max_length=255)
    cost: Decimal = Field(sa_type=sa.Numeric(12, 2))  # ty: ignore[invalid-argument-type]
    position: int = 0
    amount: int = 1
    reason: str = ""
    status: str = Field(default=LineItemStatus.PENDING, max_length=20)
    rejection_reason: str | None = None
