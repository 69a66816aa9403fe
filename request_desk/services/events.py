from __future__ import annotations

import enum
import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventKind(enum.StrEnum):
    REQUEST_CREATED = "request.created"
    REQUEST_UPDATED = "request.updated"
    REQUEST_STATUS_CHANGED = "request.status_changed"
    REQUEST_DELETED = "request.deleted"
    LINE_ITEM_STATUS_CHANGED = "line_item.status_changed"


class RequestEvent(BaseModel):
    """Notification emitted after a request mutation has been committed."""

    kind: EventKind
    request_id: str
    request_type: str
    status: str | None = None
    actor_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class EventPublisher(Protocol):
    """Interface for delivering request events to interested parties."""

    async def publish(self, event: RequestEvent) -> None:
        """Deliver one event."""
        ...


class LoggingEventPublisher:
    """Default publisher: writes each event to the application log."""

    async def publish(self, event: RequestEvent) -> None:
        logger.info("Event %s request=%s status=%s actor=%s", event.kind, event.request_id, event.status, event.actor_id)


class InMemoryEventPublisher:
    """Collects events in memory, for tests and local inspection."""

    def __init__(self) -> None:
        self.events: list[RequestEvent] = []

    async def publish(self, event: RequestEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]


_event_publisher: EventPublisher = LoggingEventPublisher()


def get_event_publisher() -> EventPublisher:
    return _event_publisher


def set_event_publisher(publisher: EventPublisher) -> None:
    """Override the publisher (for testing or production wiring)."""
    global _event_publisher
    _event_publisher = publisher


async def publish_event(event: RequestEvent) -> None:
    """Publish after commit. Delivery failures are logged and never propagate."""
    try:
        await _event_publisher.publish(event)
    except Exception:
        logger.exception("Failed to publish %s for request %s", event.kind, event.request_id)
