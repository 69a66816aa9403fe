"""Approval state machine for requests and their line items.

Request statuses move out of PENDING_APPROVAL either through an explicit
status change or by aggregating the statuses of all line items. Only an
explicit change can move a request back to PENDING_APPROVAL.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlmodel import col

from request_desk.config import get_settings
from request_desk.exceptions import InvalidStatus, NotFound
from request_desk.models.base import now_utc
from request_desk.models.enums import (
    TRAVEL_COLLECTIONS,
    AuditAction,
    AuditEntityType,
    LineItemCollection,
    LineItemStatus,
    RequestStatus,
    RequestType,
)
from request_desk.models.line_item import Attachment, EquipmentItem
from request_desk.models.request import ApprovalRequest
from request_desk.schemas.request import LineItemStatusResponse
from request_desk.services.audit import model_to_audit_dict, write_audit_log
from request_desk.services.availability import record_vacation_blackout
from request_desk.services.events import EventKind, RequestEvent, publish_event
from request_desk.services.request import (
    build_attachment_response,
    build_equipment_item_response,
    get_request_by_key_or_404,
    get_request_or_404,
    load_request_response,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from request_desk.schemas.auth import AuthContext
    from request_desk.schemas.request import (
        LineItemStatusPayload,
        LineItemUpdate,
        RequestResponse,
        StatusUpdatePayload,
    )

logger = logging.getLogger(__name__)

LineItem = Attachment | EquipmentItem

PARTIAL_REJECTION_REASON = "Some line items were rejected"
ALL_REJECTED_REASON = "All line items were rejected"
REJECTED_NOTE_PREFIX = "\n\n[REJECTED] "

# Unrecognized travel categories select this collection.
DEFAULT_TRAVEL_COLLECTION = LineItemCollection.FOOD_COSTS

_TRAVEL_CATEGORY_ALIASES: dict[str, LineItemCollection] = {
    "Food Costs": LineItemCollection.FOOD_COSTS,
    "foodCosts": LineItemCollection.FOOD_COSTS,
    "Travel Costs": LineItemCollection.TRAVEL_COSTS,
    "travelCosts": LineItemCollection.TRAVEL_COSTS,
    "Stay Costs": LineItemCollection.STAY_COSTS,
    "stayCosts": LineItemCollection.STAY_COSTS,
}


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------


def parse_request_status(value: str) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in RequestStatus)
        raise InvalidStatus(f"Status must be one of: {allowed}") from None


def parse_line_item_status(value: str) -> LineItemStatus:
    try:
        return LineItemStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in LineItemStatus)
        raise InvalidStatus(f"Status must be one of: {allowed}") from None


def parse_travel_category(category: str | None) -> LineItemCollection:
    """Map a travel category label or key to its collection."""
    collection = _TRAVEL_CATEGORY_ALIASES.get(category or "")
    if collection is None:
        logger.debug("Unrecognized travel category %r, using %s", category, DEFAULT_TRAVEL_COLLECTION)
        return DEFAULT_TRAVEL_COLLECTION
    return collection


def collection_for(request_type: RequestType, category: str | None) -> LineItemCollection:
    """The line-item collection a per-item status change addresses."""
    match request_type:
        case RequestType.TRAVEL:
            return parse_travel_category(category)
        case RequestType.VACATION:
            return LineItemCollection.ATTACHMENTS
        case RequestType.EQUIPMENT:
            return LineItemCollection.EQUIPMENT_ITEMS


@dataclass(frozen=True)
class Aggregation:
    """Request status derived from its line items."""

    status: RequestStatus
    rejection_reason: str | None = None


def aggregate_line_items(items: Iterable[tuple[str, str | None]]) -> Aggregation | None:
    """Derive a request status from ``(status, rejection_reason)`` pairs.

    Returns None while any item is pending or when there are no items.
    """
    items = list(items)
    if not items:
        return None
    approved = sum(1 for status, _ in items if status == LineItemStatus.APPROVED)
    rejected = sum(1 for status, _ in items if status == LineItemStatus.REJECTED)
    pending = len(items) - approved - rejected
    if pending:
        return None
    if approved == len(items):
        return Aggregation(RequestStatus.APPROVED)
    if rejected == len(items):
        reasons = [reason for _, reason in items if reason]
        return Aggregation(RequestStatus.REJECTED, "; ".join(reasons) or ALL_REJECTED_REASON)
    return Aggregation(RequestStatus.PARTIALLY_REJECTED, PARTIAL_REJECTION_REASON)


# ---------------------------------------------------------------------------
# Loading line items
# ---------------------------------------------------------------------------


async def _load_line_items(session: AsyncSession, request: ApprovalRequest) -> list[LineItem]:
    """All line items of a request across all of its collections."""
    if request.request_type == RequestType.EQUIPMENT.value:
        result = await session.execute(
            select(EquipmentItem)
            .where(col(EquipmentItem.request_id) == request.id)
            .order_by(col(EquipmentItem.position))
        )
    else:
        result = await session.execute(
            select(Attachment)
            .where(col(Attachment.request_id) == request.id)
            .order_by(col(Attachment.category), col(Attachment.position))
        )
    return list(result.scalars().all())


async def _get_line_item_or_404(
    session: AsyncSession,
    request: ApprovalRequest,
    item_id: uuid.UUID,
    collection: LineItemCollection,
) -> LineItem:
    item: LineItem | None
    if collection is LineItemCollection.EQUIPMENT_ITEMS:
        result = await session.execute(
            select(EquipmentItem).where(
                col(EquipmentItem.id) == item_id,
                col(EquipmentItem.request_id) == request.id,
            )
        )
        item = result.scalar_one_or_none()
    else:
        result = await session.execute(
            select(Attachment).where(
                col(Attachment.id) == item_id,
                col(Attachment.request_id) == request.id,
                col(Attachment.category) == collection.value,
            )
        )
        item = result.scalar_one_or_none()
    if item is None:
        raise NotFound(f"Line item {item_id} not found in {collection.value}")
    return item


# ---------------------------------------------------------------------------
# Explicit status changes
# ---------------------------------------------------------------------------


def _apply_line_item_update(item: LineItem, update_: LineItemUpdate, *, uniform: bool) -> None:
    """Record a per-item decision that came with a PARTIALLY_REJECTED status change.

    ``uniform`` sets the status/reason pair; otherwise a reason is appended as a note.
    """
    if uniform:
        item.status = update_.status.value
        item.rejection_reason = update_.rejection_reason if update_.status is LineItemStatus.REJECTED else None
    elif update_.rejection_reason:
        note = REJECTED_NOTE_PREFIX + update_.rejection_reason
        if isinstance(item, EquipmentItem):
            item.reason = item.reason + note
        else:
            item.description = item.description + note
    item.updated_at = now_utc()


async def _match_line_item_updates(
    session: AsyncSession,
    request: ApprovalRequest,
    updates: list[LineItemUpdate],
) -> list[tuple[LineItem, LineItemUpdate]]:
    """Pair each update with its line item. Every id must belong to the request."""
    items = {item.id: item for item in await _load_line_items(session, request)}
    unknown = [str(u.id) for u in updates if u.id not in items]
    if unknown:
        raise NotFound(f"Line items not found on request {request.request_id}: {', '.join(unknown)}")
    return [(items[u.id], u) for u in updates]


async def _apply_line_item_updates(
    session: AsyncSession,
    auth: AuthContext,
    request: ApprovalRequest,
    matched: list[tuple[LineItem, LineItemUpdate]],
) -> None:
    uniform = request.request_type == RequestType.VACATION.value or get_settings().rejection_note_mode == "uniform"
    for item, update_ in matched:
        before_dict = model_to_audit_dict(item)
        _apply_line_item_update(item, update_, uniform=uniform)
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            request_id=request.id,
            entity_type=AuditEntityType.LINE_ITEM,
            entity_id=item.id,
            action=AuditAction.UPDATE,
            before_json=before_dict,
            after_json=model_to_audit_dict(item),
        )


async def _check_travel_consistency(session: AsyncSession, request: ApprovalRequest) -> None:
    """Force PARTIALLY_REJECTED on a pending travel request whose items are both approved and rejected.

    Failures are logged and leave the request as it is.
    """
    try:
        async with session.begin_nested():
            items = await _load_line_items(session, request)
            statuses = {
                item.status for item in items if isinstance(item, Attachment) and item.category in TRAVEL_COLLECTIONS
            }
            if LineItemStatus.APPROVED in statuses and LineItemStatus.REJECTED in statuses:
                request.status = RequestStatus.PARTIALLY_REJECTED.value
                request.rejection_reason = PARTIAL_REJECTION_REASON
                request.updated_at = now_utc()
                logger.info("Travel request %s has mixed line items; set to PARTIALLY_REJECTED", request.request_id)
    except Exception:
        logger.exception("Error checking line-item consistency of travel request %s", request.request_id)


async def set_request_status(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: StatusUpdatePayload,
) -> RequestResponse:
    """Explicitly change the status of a request.

    1. Validate the status and lock the request row.
    2. Apply the per-status side fields.
    3. Apply per-item decisions for PARTIALLY_REJECTED.
    4. Vacation reaching APPROVED: record the blackout.
    5. Travel left at PENDING_APPROVAL: consistency check.
    6. Audit, commit and publish.
    """
    new_status = parse_request_status(payload.status)
    request = await get_request_or_404(session, request_id, for_update=True)
    matched: list[tuple[LineItem, LineItemUpdate]] = []
    if new_status is RequestStatus.PARTIALLY_REJECTED and payload.line_item_updates:
        matched = await _match_line_item_updates(session, request, payload.line_item_updates)

    before_dict = model_to_audit_dict(request)
    now = now_utc()

    request.status = new_status.value
    request.updated_at = now
    match new_status:
        case RequestStatus.APPROVED:
            request.approved_by = payload.approved_by or auth.user_id
            request.approved_date = now
        case RequestStatus.REJECTED | RequestStatus.PARTIALLY_REJECTED:
            request.rejection_reason = payload.rejection_reason
        case RequestStatus.PENDING_APPROVAL:
            # Re-opening is unconditional; records created by an earlier approval stay.
            request.rejection_reason = None
            request.approved_by = None
            request.approved_date = None
        case RequestStatus.CANCELLED:
            pass

    if matched:
        await _apply_line_item_updates(session, auth, request, matched)

    await session.flush()

    if new_status is RequestStatus.APPROVED and request.request_type == RequestType.VACATION.value:
        await record_vacation_blackout(session, request)

    if new_status is RequestStatus.PENDING_APPROVAL and request.request_type == RequestType.TRAVEL.value:
        await _check_travel_consistency(session, request)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.STATUS_CHANGE,
        before_json=before_dict,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()
    await session.refresh(request)

    response = await load_request_response(session, request)
    await publish_event(
        RequestEvent(
            kind=EventKind.REQUEST_STATUS_CHANGED,
            request_id=request.request_id,
            request_type=request.request_type,
            status=request.status,
            actor_id=auth.user_id,
            payload={"previous_status": before_dict["status"]},
        )
    )
    return response


# ---------------------------------------------------------------------------
# Per-item status changes
# ---------------------------------------------------------------------------


async def _aggregate(session: AsyncSession, auth: AuthContext, request: ApprovalRequest) -> Aggregation | None:
    """Resolve a pending request from its line items.

    The transition is a compare-and-swap on PENDING_APPROVAL, so of several
    concurrent callers exactly one applies it. Returns the applied outcome.
    """
    if request.status != RequestStatus.PENDING_APPROVAL.value:
        return None
    items = await _load_line_items(session, request)
    outcome = aggregate_line_items((item.status, item.rejection_reason) for item in items)
    if outcome is None:
        return None

    before_dict = model_to_audit_dict(request)
    result = await session.execute(
        update(ApprovalRequest)
        .where(
            col(ApprovalRequest.id) == request.id,
            col(ApprovalRequest.status) == RequestStatus.PENDING_APPROVAL.value,
        )
        .values(
            status=outcome.status.value,
            rejection_reason=outcome.rejection_reason,
            updated_at=now_utc(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # ty: ignore[unresolved-attribute]
        logger.info("Request %s was resolved concurrently; skipping aggregation", request.request_id)
        return None

    await session.refresh(request)
    if outcome.status is RequestStatus.APPROVED and request.request_type == RequestType.VACATION.value:
        await record_vacation_blackout(session, request)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.AUTO_RESOLVE,
        before_json=before_dict,
        after_json=model_to_audit_dict(request),
    )
    logger.info("Request %s resolved to %s from its line items", request.request_id, outcome.status)
    return outcome


async def set_line_item_status(
    session: AsyncSession,
    auth: AuthContext,
    request_key: str,
    item_id: uuid.UUID,
    payload: LineItemStatusPayload,
) -> LineItemStatusResponse:
    """Approve, reject or reset one line item, then aggregate the request status."""
    new_status = parse_line_item_status(payload.status)
    request = await get_request_by_key_or_404(session, request_key, for_update=True)
    collection = collection_for(RequestType(request.request_type), payload.category)
    item = await _get_line_item_or_404(session, request, item_id, collection)

    before_dict = model_to_audit_dict(item)
    item.status = new_status.value
    item.rejection_reason = (
        payload.rejection_reason if new_status is LineItemStatus.REJECTED and payload.rejection_reason else None
    )
    item.updated_at = now_utc()
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        request_id=request.id,
        entity_type=AuditEntityType.LINE_ITEM,
        entity_id=item.id,
        action=AuditAction.STATUS_CHANGE,
        before_json=before_dict,
        after_json=model_to_audit_dict(item),
    )

    outcome = await _aggregate(session, auth, request)
    await session.commit()
    await session.refresh(item)
    await session.refresh(request)

    await publish_event(
        RequestEvent(
            kind=EventKind.LINE_ITEM_STATUS_CHANGED,
            request_id=request.request_id,
            request_type=request.request_type,
            status=request.status,
            actor_id=auth.user_id,
            payload={"item_id": str(item.id), "item_status": item.status, "collection": collection.value},
        )
    )
    if outcome is not None:
        await publish_event(
            RequestEvent(
                kind=EventKind.REQUEST_STATUS_CHANGED,
                request_id=request.request_id,
                request_type=request.request_type,
                status=request.status,
                actor_id=auth.user_id,
                payload={"previous_status": RequestStatus.PENDING_APPROVAL.value, "aggregated": True},
            )
        )

    item_response = (
        build_equipment_item_response(item) if isinstance(item, EquipmentItem) else build_attachment_response(item)
    )
    return LineItemStatusResponse(item=item_response, request_status=RequestStatus(request.status))
