# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from request_desk.exceptions import DuplicateRequest, NotFound, ValidationError
from request_desk.models.base import now_utc
from request_desk.models.comment import VacationComment
from request_desk.models.enums import (
    AuditAction,
    AuditEntityType,
    LineItemCollection,
    LineItemStatus,
    RequestStatus,
    RequestType,
)
from request_desk.models.line_item import Attachment, EquipmentItem
from request_desk.models.manager import Manager
from request_desk.models.request import ApprovalRequest
from request_desk.models.user import User
from request_desk.schemas.request import (
    AttachmentResponse,
    CommentResponse,
    EquipmentItemResponse,
    EquipmentRequestResponse,
    RequestListResponse,
    RequestResponse,
    TravelRequestResponse,
    VacationRequestResponse,
)
from request_desk.services.audit import model_to_audit_dict, write_audit_log
from request_desk.services.events import EventKind, RequestEvent, publish_event
from request_desk.services.manager import build_manager_response, ensure_manager, resolve_manager_id

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from request_desk.schemas.auth import AuthContext
    from request_desk.schemas.request import (
        AttachmentPayload,
        CommentPayload,
        CreateEquipmentRequestPayload,
        CreateTravelRequestPayload,
        CreateVacationRequestPayload,
        UpdateRequestPayload,
    )
    from request_desk.services.storage import AttachmentStore

logger = logging.getLogger(__name__)

# Fields each request type accepts in a partial update.
_UPDATABLE_FIELDS: dict[RequestType, frozenset[str]] = {
    RequestType.TRAVEL: frozenset(
        {
            "manager_id",
            "destination",
            "start_date",
            "end_date",
            "reason",
            "duration",
            "submitted_by",
            "submitted_by_email",
        }
    ),
    RequestType.VACATION: frozenset(
        {"manager_id", "start_date", "end_date", "reason", "vacation_type", "substitute_id"}
    ),
    RequestType.EQUIPMENT: frozenset({"manager_id"}),
}


# ---------------------------------------------------------------------------
# Response building
# ---------------------------------------------------------------------------


def build_attachment_response(attachment: Attachment) -> AttachmentResponse:
    return AttachmentResponse(
        id=attachment.id,
        category=attachment.category,
        file_name=attachment.file_name,
        file_url=attachment.file_url,
        file_size=attachment.file_size,
        file_type=attachment.file_type,
        description=attachment.description,
        upload_date=attachment.upload_date,
        status=LineItemStatus(attachment.status),
        rejection_reason=attachment.rejection_reason,
        updated_at=attachment.updated_at,
    )


def build_equipment_item_response(item: EquipmentItem) -> EquipmentItemResponse:
    return EquipmentItemResponse(
        id=item.id,
        type=item.type,
        name=item.name,
        cost=item.cost,
        amount=item.amount,
        reason=item.reason,
        status=LineItemStatus(item.status),
        rejection_reason=item.rejection_reason,
        updated_at=item.updated_at,
    )


def _build_comment_response(comment: VacationComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        user_id=comment.user_id,
        comment=comment.comment,
        created_at=comment.created_at,
    )


@dataclass
class _Children:
    """Line items, comments and managers of a batch of requests, keyed by parent."""

    attachments: dict[uuid.UUID, list[Attachment]] = field(default_factory=lambda: defaultdict(list))
    equipment_items: dict[uuid.UUID, list[EquipmentItem]] = field(default_factory=lambda: defaultdict(list))
    comments: dict[uuid.UUID, list[VacationComment]] = field(default_factory=lambda: defaultdict(list))
    managers: dict[str, Manager] = field(default_factory=dict)


async def _load_children(session: AsyncSession, requests: Sequence[ApprovalRequest]) -> _Children:
    children = _Children()
    if not requests:
        return children
    ids = [r.id for r in requests]

    result = await session.execute(
        select(Attachment)
        .where(col(Attachment.request_id).in_(ids))
        .order_by(col(Attachment.position), col(Attachment.upload_date))
    )
    for attachment in result.scalars().all():
        children.attachments[attachment.request_id].append(attachment)

    result = await session.execute(
        select(EquipmentItem).where(col(EquipmentItem.request_id).in_(ids)).order_by(col(EquipmentItem.position))
    )
    for item in result.scalars().all():
        children.equipment_items[item.request_id].append(item)

    result = await session.execute(
        select(VacationComment)
        .where(col(VacationComment.request_id).in_(ids))
        .order_by(col(VacationComment.created_at))
    )
    for comment in result.scalars().all():
        children.comments[comment.request_id].append(comment)

    manager_ids = {r.manager_id for r in requests}
    result = await session.execute(select(Manager).where(col(Manager.manager_id).in_(manager_ids)))
    children.managers = {m.manager_id: m for m in result.scalars().all()}
    return children


def _build_request_response(request: ApprovalRequest, children: _Children) -> RequestResponse:
    """Map a request model and its children to the variant response schema."""
    manager = children.managers.get(request.manager_id)
    common: dict[str, Any] = {
        "id": request.id,
        "request_id": request.request_id,
        "status": RequestStatus(request.status),
        "manager_id": request.manager_id,
        "manager": build_manager_response(manager) if manager is not None else None,
        "user_id": request.user_id,
        "submitted_date": request.submitted_date,
        "approved_date": request.approved_date,
        "approved_by": request.approved_by,
        "rejection_reason": request.rejection_reason,
        "created_at": request.created_at,
        "updated_at": request.updated_at,
    }
    attachments = children.attachments.get(request.id, [])

    def _collection(name: LineItemCollection) -> list[AttachmentResponse]:
        return [build_attachment_response(a) for a in attachments if a.category == name]

    request_type = RequestType(request.request_type)
    if request_type is RequestType.TRAVEL:
        return TravelRequestResponse(
            **common,
            submitted_by=request.submitted_by,
            submitted_by_email=request.submitted_by_email,
            destination=request.destination,
            start_date=request.start_date,
            end_date=request.end_date,
            reason=request.reason,
            duration=request.duration,
            food_costs=_collection(LineItemCollection.FOOD_COSTS),
            travel_costs=_collection(LineItemCollection.TRAVEL_COSTS),
            stay_costs=_collection(LineItemCollection.STAY_COSTS),
        )
    if request_type is RequestType.VACATION:
        return VacationRequestResponse(
            **common,
            substitute_id=request.substitute_id,
            vacation_type=request.vacation_type,
            start_date=request.start_date,
            end_date=request.end_date,
            reason=request.reason,
            attachments=_collection(LineItemCollection.ATTACHMENTS),
            comments=[_build_comment_response(c) for c in children.comments.get(request.id, [])],
        )
    return EquipmentRequestResponse(
        **common,
        total_cost=request.total_cost,
        equipment_items=[build_equipment_item_response(i) for i in children.equipment_items.get(request.id, [])],
    )


async def load_request_response(session: AsyncSession, request: ApprovalRequest) -> RequestResponse:
    """Load the children of one request and build its response."""
    children = await _load_children(session, [request])
    return _build_request_response(request, children)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> ApprovalRequest:
    """Fetch a request by internal ID. Raises 404 if not found."""
    query = select(ApprovalRequest).where(col(ApprovalRequest.id) == request_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound("Request not found")
    return request


async def get_request_by_key_or_404(
    session: AsyncSession,
    request_key: str,
    *,
    for_update: bool = False,
) -> ApprovalRequest:
    """Fetch a request by its business ``request_id``. Raises 404 if not found."""
    query = select(ApprovalRequest).where(col(ApprovalRequest.request_id) == request_key)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound(f"Request {request_key} not found")
    return request


async def _request_id_taken(session: AsyncSession, request_key: str) -> bool:
    result = await session.execute(
        select(func.count()).select_from(ApprovalRequest).where(col(ApprovalRequest.request_id) == request_key)
    )
    return result.scalar_one() > 0


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def _new_attachments(
    parent_id: uuid.UUID,
    collection: LineItemCollection,
    payloads: Sequence[AttachmentPayload],
) -> list[Attachment]:
    """Attachment rows for one collection. Every item starts PENDING without a reason."""
    return [
        Attachment(
            request_id=parent_id,
            category=collection.value,
            position=position,
            file_name=p.file_name,
            file_url=p.file_url,
            file_size=p.file_size,
            file_type=p.file_type,
            description=p.description,
            upload_date=p.upload_date or now_utc(),
            status=LineItemStatus.PENDING.value,
            rejection_reason=None,
        )
        for position, p in enumerate(payloads)
    ]


async def _flush_creation(session: AsyncSession, request: ApprovalRequest) -> None:
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        if await _request_id_taken(session, request.request_id):
            raise DuplicateRequest(f"A request with ID {request.request_id} already exists") from None
        raise ValidationError("Request references unknown users or managers") from None


async def _insert_request(
    session: AsyncSession,
    auth: AuthContext,
    request: ApprovalRequest,
    children: Sequence[SQLModel],
) -> RequestResponse:
    """Insert a request and its line items as one unit, then audit, commit and publish.

    The parent row is flushed before its children so the line-item foreign
    keys always point at an existing row. Both flushes share one transaction.
    """
    session.add(request)
    await _flush_creation(session, request)
    if children:
        session.add_all(children)
        await _flush_creation(session, request)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()

    response = await load_request_response(session, request)
    await publish_event(
        RequestEvent(
            kind=EventKind.REQUEST_CREATED,
            request_id=request.request_id,
            request_type=request.request_type,
            status=request.status,
            actor_id=auth.user_id,
        )
    )
    return response


async def create_travel_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateTravelRequestPayload,
) -> RequestResponse:
    """Create a travel request with its food, travel and stay cost attachments.

    1. Reject a duplicate request_id before touching anything.
    2. Resolve the approving manager, creating it if needed.
    3. Insert the request, then its attachments, in one transaction.
    """
    if await _request_id_taken(session, payload.request_id):
        raise DuplicateRequest(f"A request with ID {payload.request_id} already exists")

    manager = await ensure_manager(session, payload.approving_manager)
    info = payload.travel_information
    submitter = payload.submitter

    request = ApprovalRequest(
        request_id=payload.request_id,
        request_type=RequestType.TRAVEL.value,
        status=(payload.status or RequestStatus.PENDING_APPROVAL).value,
        submitted_date=payload.submitted_date or now_utc(),
        manager_id=manager.manager_id,
        user_id=submitter.user_id if submitter else None,
        submitted_by=submitter.submitted_by if submitter else None,
        submitted_by_email=submitter.submitted_by_email if submitter else None,
        destination=info.destination,
        start_date=info.start_date,
        end_date=info.end_date,
        reason=info.reason,
        duration=info.duration,
    )
    expenses = payload.expenses
    attachments = [
        *_new_attachments(request.id, LineItemCollection.FOOD_COSTS, expenses.food_costs),
        *_new_attachments(request.id, LineItemCollection.TRAVEL_COSTS, expenses.travel_costs),
        *_new_attachments(request.id, LineItemCollection.STAY_COSTS, expenses.stay_costs),
    ]
    return await _insert_request(session, auth, request, attachments)


async def create_vacation_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateVacationRequestPayload,
) -> RequestResponse:
    """Create a vacation request with its attachments.

    The requester and the substitute must be known users and the manager
    reference must resolve to an existing manager.
    """
    if await _request_id_taken(session, payload.request_id):
        raise DuplicateRequest(f"A request with ID {payload.request_id} already exists")

    for label, user_id in (("user", payload.user_id), ("substitute", payload.substitute_id)):
        if await session.get(User, user_id) is None:
            raise ValidationError(f"Unknown {label} {user_id}")

    manager_id = await resolve_manager_id(session, payload.manager_id)
    if manager_id is None or await session.get(Manager, manager_id) is None:
        raise ValidationError(f"Unknown manager {payload.manager_id}")

    request = ApprovalRequest(
        request_id=payload.request_id,
        request_type=RequestType.VACATION.value,
        status=(payload.status or RequestStatus.PENDING_APPROVAL).value,
        submitted_date=payload.submitted_date or now_utc(),
        manager_id=manager_id,
        user_id=payload.user_id,
        substitute_id=payload.substitute_id,
        vacation_type=payload.vacation_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    attachments = _new_attachments(request.id, LineItemCollection.ATTACHMENTS, payload.attachments)
    return await _insert_request(session, auth, request, attachments)


async def create_equipment_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateEquipmentRequestPayload,
) -> RequestResponse:
    """Create an equipment request with its items. ``total_cost`` defaults to the sum of cost x amount."""
    if await _request_id_taken(session, payload.request_id):
        raise DuplicateRequest(f"A request with ID {payload.request_id} already exists")

    manager = await ensure_manager(session, payload.approving_manager)
    total_cost = payload.total_cost
    if total_cost is None:
        total_cost = sum((i.cost * i.amount for i in payload.equipment_items), Decimal(0))

    request = ApprovalRequest(
        request_id=payload.request_id,
        request_type=RequestType.EQUIPMENT.value,
        status=(payload.status or RequestStatus.PENDING_APPROVAL).value,
        submitted_date=payload.submitted_date or now_utc(),
        manager_id=manager.manager_id,
        user_id=payload.user_id,
        total_cost=total_cost,
    )
    items = [
        EquipmentItem(
            request_id=request.id,
            position=position,
            type=i.type,
            name=i.name,
            cost=i.cost,
            amount=i.amount,
            reason=i.reason,
            status=LineItemStatus.PENDING.value,
            rejection_reason=None,
        )
        for position, i in enumerate(payload.equipment_items)
    ]
    return await _insert_request(session, auth, request, items)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_request(session: AsyncSession, request_id: uuid.UUID) -> RequestResponse:
    """Get a single request by ID."""
    request = await get_request_or_404(session, request_id)
    return await load_request_response(session, request)


async def list_requests(
    session: AsyncSession,
    status_filter: str | None = None,
    manager_id: str | None = None,
    user_id: str | None = None,
    request_type: RequestType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests with optional filters, ordered by submitted_date DESC."""
    base_filters = []
    if status_filter is not None:
        base_filters.append(col(ApprovalRequest.status) == status_filter)
    if manager_id is not None:
        base_filters.append(col(ApprovalRequest.manager_id) == manager_id)
    if user_id is not None:
        base_filters.append(col(ApprovalRequest.user_id) == user_id)
    if request_type is not None:
        base_filters.append(col(ApprovalRequest.request_type) == request_type.value)

    count_result = await session.execute(select(func.count()).select_from(ApprovalRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(ApprovalRequest)
        .where(*base_filters)
        .order_by(col(ApprovalRequest.submitted_date).desc(), col(ApprovalRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())
    children = await _load_children(session, requests)

    return RequestListResponse(
        items=[_build_request_response(r, children) for r in requests],
        total=total,
    )


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------


async def update_request_fields(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
) -> RequestResponse:
    """Patch mutable fields of a request. A new ``manager_id`` is resolved first."""
    request = await get_request_or_404(session, request_id)
    request_type = RequestType(request.request_type)

    changes = payload.model_dump(exclude_unset=True)
    if not changes.get("manager_id"):
        # An empty manager reference means "no change requested".
        changes.pop("manager_id", None)

    not_allowed = sorted(set(changes) - _UPDATABLE_FIELDS[request_type])
    if not_allowed:
        raise ValidationError(f"Fields not updatable on {request_type.value.lower()} requests: {', '.join(not_allowed)}")

    if "manager_id" in changes:
        changes["manager_id"] = await resolve_manager_id(session, changes["manager_id"])

    start = changes.get("start_date", request.start_date)
    end = changes.get("end_date", request.end_date)
    if start is not None and end is not None and end < start:
        raise ValidationError("end_date must not be before start_date")

    before_dict = model_to_audit_dict(request)
    for key, value in changes.items():
        setattr(request, key, value)
    request.updated_at = now_utc()

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ValidationError("Update references an unknown manager or user") from None

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()
    await session.refresh(request)

    response = await load_request_response(session, request)
    await publish_event(
        RequestEvent(
            kind=EventKind.REQUEST_UPDATED,
            request_id=request.request_id,
            request_type=request.request_type,
            status=request.status,
            actor_id=auth.user_id,
            payload={"fields": sorted(changes)},
        )
    )
    return response


async def add_vacation_comment(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: CommentPayload,
) -> CommentResponse:
    """Append a comment to a vacation request."""
    request = await get_request_or_404(session, request_id)
    if request.request_type != RequestType.VACATION.value:
        raise ValidationError("Comments are only supported on vacation requests")
    if await session.get(User, payload.user_id) is None:
        raise ValidationError(f"Unknown user {payload.user_id}")

    comment = VacationComment(request_id=request.id, user_id=payload.user_id, comment=payload.comment)
    session.add(comment)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.COMMENT,
        entity_id=comment.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(comment),
    )
    await session.commit()
    return _build_comment_response(comment)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def stored_name_from_url(file_url: str) -> str:
    """Last path segment of a file URL, i.e. the generated stored name."""
    return PurePosixPath(urlsplit(file_url).path).name


async def _delete_attachment_files(
    store: AttachmentStore,
    request: ApprovalRequest,
    attachments: Sequence[Attachment],
) -> None:
    """Remove the files behind a request's attachments. Failures are logged and ignored."""
    targets = [a for a in attachments if a.file_url]
    results = await asyncio.gather(
        *(store.delete(stored_name_from_url(a.file_url or ""), a.category, request.request_id) for a in targets),
        return_exceptions=True,
    )
    for attachment, outcome in zip(targets, results, strict=True):
        if isinstance(outcome, Exception):
            logger.warning(
                "Could not delete file for attachment %s of request %s: %s",
                attachment.id,
                request.request_id,
                outcome,
            )


async def delete_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    store: AttachmentStore,
) -> None:
    """Delete a request, its attachment files (best-effort) and all child rows."""
    request = await get_request_or_404(session, request_id)
    result = await session.execute(select(Attachment).where(col(Attachment.request_id) == request.id))
    attachments = list(result.scalars().all())

    await _delete_attachment_files(store, request, attachments)

    before_dict = model_to_audit_dict(request)
    await session.execute(delete(VacationComment).where(col(VacationComment.request_id) == request.id))
    await session.execute(delete(Attachment).where(col(Attachment.request_id) == request.id))
    await session.execute(delete(EquipmentItem).where(col(EquipmentItem.request_id) == request.id))
    await session.delete(request)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.DELETE,
        before_json=before_dict,
    )
    await session.commit()

    await publish_event(
        RequestEvent(
            kind=EventKind.REQUEST_DELETED,
            request_id=request.request_id,
            request_type=request.request_type,
            status=request.status,
            actor_id=auth.user_id,
        )
    )
