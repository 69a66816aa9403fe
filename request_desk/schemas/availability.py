# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Self

from pydantic import BaseModel, Field, model_validator

from request_desk.models.enums import AvailabilityType


class AvailabilityCheckPayload(BaseModel):
    """Request body for checking whether a user is free in a date range."""

    user_id: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class AvailabilityResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    start_date: date
    end_date: date
    availability_type: AvailabilityType
    reason: str | None


class AvailabilityListResponse(BaseModel):
    items: list[AvailabilityResponse]
    total: int


class AvailabilityConflict(BaseModel):
    start_date: date
    end_date: date
    reason: str | None


class AvailabilityCheckResponse(BaseModel):
    """Result of an availability check: free when there are no conflicts."""

    available: bool
    conflicts: list[AvailabilityConflict]
