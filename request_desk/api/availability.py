# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query

from request_desk.db import SessionDep
from request_desk.models.enums import AvailabilityType
from request_desk.schemas.availability import (
    AvailabilityCheckPayload,
    AvailabilityCheckResponse,
    AvailabilityListResponse,
)
from request_desk.services import availability as availability_service

availability_router = APIRouter(prefix="/availability", tags=["availability"])


@availability_router.get("", response_model=AvailabilityListResponse)
async def list_availability(
    session: SessionDep,
    user_id: str = Query(min_length=1),
    availability_type: AvailabilityType | None = Query(default=None, alias="type"),
) -> AvailabilityListResponse:
    """List the periods in which a user is unavailable."""
    return await availability_service.list_availability(session, user_id, availability_type)


@availability_router.post("/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    payload: AvailabilityCheckPayload,
    session: SessionDep,
) -> AvailabilityCheckResponse:
    """Report whether a user is free for a date range, with any overlapping periods."""
    return await availability_service.check_availability(
        session, payload.user_id, payload.start_date, payload.end_date
    )
