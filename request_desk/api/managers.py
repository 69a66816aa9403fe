# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query

from request_desk.db import SessionDep
from request_desk.schemas.manager import ManagerListResponse
from request_desk.services import manager as manager_service

managers_router = APIRouter(prefix="/managers", tags=["managers"])


@managers_router.get("", response_model=ManagerListResponse)
async def list_managers(
    session: SessionDep,
    email: str | None = Query(default=None),
) -> ManagerListResponse:
    """List managers with the number of requests routed to each."""
    return await manager_service.list_managers(session, email)
