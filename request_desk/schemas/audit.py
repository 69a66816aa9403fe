# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from request_desk.models.enums import AuditAction, AuditEntityType


class AuditEntryResponse(BaseModel):
    """One audited mutation. ``changed_fields`` lists the keys whose values differ."""

    id: uuid.UUID
    actor_id: str
    entity_type: AuditEntityType
    entity_id: uuid.UUID
    action: AuditAction
    changed_fields: list[str]
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime


class AuditTrailResponse(BaseModel):
    """Audit entries of a request and its children, oldest first."""

    request_id: str
    items: list[AuditEntryResponse]
    total: int
