from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from request_desk.exceptions import NotFound
from request_desk.models.audit import AuditLog
from request_desk.models.enums import AuditAction, AuditEntityType
from request_desk.models.request import ApprovalRequest
from request_desk.schemas.audit import AuditEntryResponse, AuditTrailResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

# Stamped on every write, so never interesting on its own.
_IGNORED_CHANGES = frozenset({"updated_at"})


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, datetime):
            # Naive values come back from SQLite and are UTC.
            aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
            data[key] = aware.astimezone(UTC).isoformat()
        elif isinstance(value, date):
            data[key] = value.isoformat()
        elif isinstance(value, Decimal):
            data[key] = str(value)
        else:
            data[key] = value
    return data


def changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    """Keys whose values differ between two audit snapshots, sorted."""
    before = before or {}
    after = after or {}
    keys = (before.keys() | after.keys()) - _IGNORED_CHANGES
    return sorted(k for k in keys if before.get(k) != after.get(k))


async def write_audit_log(
    session: AsyncSession,
    *,
    actor_id: str,
    request_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an audit entry to the caller's transaction; it commits with the change it describes."""
    entry = AuditLog(
        request_id=request_id,
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def get_audit_trail(session: AsyncSession, request_id: uuid.UUID) -> AuditTrailResponse:
    """All audit entries of an existing request, oldest first."""
    request = await session.get(ApprovalRequest, request_id)
    if request is None:
        raise NotFound("Request not found")

    result = await session.execute(
        select(AuditLog).where(col(AuditLog.request_id) == request.id).order_by(col(AuditLog.created_at))
    )
    items = [
        AuditEntryResponse(
            id=entry.id,
            actor_id=entry.actor_id,
            entity_type=AuditEntityType(entry.entity_type),
            entity_id=entry.entity_id,
            action=AuditAction(entry.action),
            changed_fields=changed_fields(entry.before_json, entry.after_json),
            before_json=entry.before_json,
            after_json=entry.after_json,
            created_at=entry.created_at,
        )
        for entry in result.scalars().all()
    ]
    return AuditTrailResponse(request_id=request.request_id, items=items, total=len(items))
