# ruff: noqa: TC003
from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from request_desk.exceptions import ValidationError
from request_desk.models.availability import Availability
from request_desk.models.enums import AvailabilityType, RequestType
from request_desk.schemas.availability import (
    AvailabilityCheckResponse,
    AvailabilityConflict,
    AvailabilityListResponse,
    AvailabilityResponse,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from request_desk.models.request import ApprovalRequest

logger = logging.getLogger(__name__)


def _build_availability_response(record: Availability) -> AvailabilityResponse:
    return AvailabilityResponse(
        id=record.id,
        user_id=record.user_id,
        start_date=record.start_date,
        end_date=record.end_date,
        availability_type=AvailabilityType(record.availability_type),
        reason=record.reason,
    )


async def record_vacation_blackout(session: AsyncSession, request: ApprovalRequest) -> Availability | None:
    """Mark the requester unavailable for an approved vacation.

    Idempotent per (user, start, end, type). The insert runs in a savepoint and
    any failure is logged, so the caller's status change always goes through.
    Returns the new record, or None when nothing was created.
    """
    if request.request_type != RequestType.VACATION.value:
        return None
    if request.user_id is None or request.start_date is None or request.end_date is None:
        logger.warning("Vacation request %s has no requester or dates; no blackout recorded", request.request_id)
        return None

    try:
        result = await session.execute(
            select(Availability)
            .where(
                col(Availability.user_id) == request.user_id,
                col(Availability.start_date) == request.start_date,
                col(Availability.end_date) == request.end_date,
                col(Availability.availability_type) == AvailabilityType.VACATION.value,
            )
            .limit(1)
        )
        if result.scalars().first() is not None:
            return None

        record = Availability(
            user_id=request.user_id,
            start_date=request.start_date,
            end_date=request.end_date,
            availability_type=AvailabilityType.VACATION.value,
            reason=request.reason or "Vacation",
        )
        async with session.begin_nested():
            session.add(record)
    except Exception:
        logger.exception("Error creating availability for approved vacation %s", request.request_id)
        return None
    return record


async def list_availability(
    session: AsyncSession,
    user_id: str,
    availability_type: AvailabilityType | None = None,
) -> AvailabilityListResponse:
    """List a user's blackout periods ordered by start date."""
    if not user_id:
        raise ValidationError("user_id is required")
    filters = [col(Availability.user_id) == user_id]
    if availability_type is not None:
        filters.append(col(Availability.availability_type) == availability_type.value)

    result = await session.execute(select(Availability).where(*filters).order_by(col(Availability.start_date)))
    items = [_build_availability_response(r) for r in result.scalars().all()]
    return AvailabilityListResponse(items=items, total=len(items))


async def check_availability(
    session: AsyncSession,
    user_id: str,
    start_date: date,
    end_date: date,
) -> AvailabilityCheckResponse:
    """Every record overlapping [start_date, end_date] is a conflict."""
    result = await session.execute(
        select(Availability)
        .where(
            col(Availability.user_id) == user_id,
            col(Availability.start_date) <= end_date,
            col(Availability.end_date) >= start_date,
        )
        .order_by(col(Availability.start_date))
    )
    conflicts = [
        AvailabilityConflict(start_date=r.start_date, end_date=r.end_date, reason=r.reason)
        for r in result.scalars().all()
    ]
    return AvailabilityCheckResponse(available=not conflicts, conflicts=conflicts)
