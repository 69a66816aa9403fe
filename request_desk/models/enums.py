from __future__ import annotations

import enum


class RequestType(enum.StrEnum):
    """Variant tag of an approval request."""

    TRAVEL = "TRAVEL"
    VACATION = "VACATION"
    EQUIPMENT = "EQUIPMENT"


class RequestStatus(enum.StrEnum):
    """State machine for approval requests."""

    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PARTIALLY_REJECTED = "PARTIALLY_REJECTED"
    CANCELLED = "CANCELLED"


class LineItemStatus(enum.StrEnum):
    """Review state of a single attachment or equipment item."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LineItemCollection(enum.StrEnum):
    """Named child collections of a request."""

    FOOD_COSTS = "foodCosts"
    TRAVEL_COSTS = "travelCosts"
    STAY_COSTS = "stayCosts"
    ATTACHMENTS = "attachments"
    EQUIPMENT_ITEMS = "equipmentItems"


TRAVEL_COLLECTIONS = (
    LineItemCollection.FOOD_COSTS,
    LineItemCollection.TRAVEL_COSTS,
    LineItemCollection.STAY_COSTS,
)


class UserRole(enum.StrEnum):
    USER = "USER"
    MANAGER = "MANAGER"


class AvailabilityType(enum.StrEnum):
    """Reason a user is blacked out for a date range."""

    VACATION = "VACATION"
    SICK = "SICK"
    OTHER = "OTHER"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    LINE_ITEM = "LINE_ITEM"
    COMMENT = "COMMENT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    AUTO_RESOLVE = "AUTO_RESOLVE"
