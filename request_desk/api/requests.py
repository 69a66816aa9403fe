# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, Response, status

from request_desk.api.deps import AuthDep, ManagerDep, StoreDep
from request_desk.db import SessionDep
from request_desk.models.enums import RequestType
from request_desk.schemas.audit import AuditTrailResponse
from request_desk.schemas.request import (
    CommentPayload,
    CommentResponse,
    CreateEquipmentRequestPayload,
    CreateTravelRequestPayload,
    CreateVacationRequestPayload,
    LineItemStatusPayload,
    LineItemStatusResponse,
    RequestListResponse,
    RequestResponse,
    StatusUpdatePayload,
    UpdateRequestPayload,
)
from request_desk.services import approval as approval_service
from request_desk.services import audit as audit_service
from request_desk.services import request as request_service

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("/travel", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_travel_request(
    payload: CreateTravelRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit a travel reimbursement request with its expense attachments."""
    return await request_service.create_travel_request(session, auth, payload)


@requests_router.post("/vacation", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_vacation_request(
    payload: CreateVacationRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit a vacation request."""
    return await request_service.create_vacation_request(session, auth, payload)


@requests_router.post("/equipment", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_equipment_request(
    payload: CreateEquipmentRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit an equipment purchase request."""
    return await request_service.create_equipment_request(session, auth, payload)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    status_filter: str | None = Query(default=None, alias="status"),
    manager_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    request_type: RequestType | None = Query(default=None, alias="type"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List requests of all types, newest first."""
    return await request_service.list_requests(
        session, status_filter, manager_id, user_id, request_type, offset, limit
    )


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
) -> RequestResponse:
    return await request_service.get_request(session, request_id)


@requests_router.patch("/{request_id}/status", response_model=RequestResponse)
async def set_request_status(
    request_id: uuid.UUID,
    payload: StatusUpdatePayload,
    session: SessionDep,
    auth: ManagerDep,
) -> RequestResponse:
    """Approve, reject, partially reject, cancel or re-open a request (manager only)."""
    return await approval_service.set_request_status(session, auth, request_id, payload)


@requests_router.patch(
    "/{request_key}/line-items/{item_id}/status",
    response_model=LineItemStatusResponse,
)
async def set_line_item_status(
    request_key: str,
    item_id: uuid.UUID,
    payload: LineItemStatusPayload,
    session: SessionDep,
    auth: ManagerDep,
) -> LineItemStatusResponse:
    """Decide one line item, addressed by the business request id (manager only)."""
    return await approval_service.set_line_item_status(session, auth, request_key, item_id, payload)


@requests_router.patch("/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Patch mutable fields, e.g. forward the request to another manager."""
    return await request_service.update_request_fields(session, auth, request_id, payload)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    store: StoreDep,
) -> Response:
    """Delete a request together with its line items and files."""
    await request_service.delete_request(session, auth, request_id, store)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@requests_router.post(
    "/{request_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    request_id: uuid.UUID,
    payload: CommentPayload,
    session: SessionDep,
    auth: AuthDep,
) -> CommentResponse:
    """Comment on a vacation request."""
    return await request_service.add_vacation_comment(session, auth, request_id, payload)


@requests_router.get("/{request_id}/audit", response_model=AuditTrailResponse)
async def get_audit_trail(
    request_id: uuid.UUID,
    session: SessionDep,
) -> AuditTrailResponse:
    """Every recorded change to the request, its line items and comments."""
    return await audit_service.get_audit_trail(session, request_id)
