from __future__ import annotations

from pydantic import BaseModel


class ManagerResponse(BaseModel):
    """Response schema for an approving manager."""

    manager_id: str
    manager_name: str
    email: str | None
    department: str | None


class ManagerSummary(ManagerResponse):
    """Manager with the number of requests routed to them."""

    request_count: int


class ManagerListResponse(BaseModel):
    items: list[ManagerSummary]
    total: int
