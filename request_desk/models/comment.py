# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from request_desk.models.base import TimestampMixin, UUIDBase


class VacationComment(UUIDBase, TimestampMixin, table=True):
    """A free-text comment on a vacation request."""

    __tablename__ = "vacation_comment"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("approval_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    user_id: str = Field(max_length=100)
    comment: str
