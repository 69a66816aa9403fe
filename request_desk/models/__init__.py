from sqlmodel import SQLModel

from request_desk.models.audit import AuditLog
from request_desk.models.availability import Availability
from request_desk.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from request_desk.models.comment import VacationComment
from request_desk.models.enums import (
    AuditAction,
    AuditEntityType,
    AvailabilityType,
    LineItemCollection,
    LineItemStatus,
    RequestStatus,
    RequestType,
    UserRole,
)
from request_desk.models.line_item import Attachment, EquipmentItem
from request_desk.models.manager import Manager
from request_desk.models.request import ApprovalRequest
from request_desk.models.user import User

__all__ = [
    "ApprovalRequest",
    "Attachment",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Availability",
    "AvailabilityType",
    "EquipmentItem",
    "LineItemCollection",
    "LineItemStatus",
    "Manager",
    "RequestStatus",
    "RequestType",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
    "User",
    "UserRole",
    "VacationComment",
]
