"""Unit tests for request payload and response schemas."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from request_desk.models.enums import LineItemStatus
from request_desk.schemas.availability import AvailabilityCheckPayload
from request_desk.schemas.request import (
    CreateEquipmentRequestPayload,
    CreateTravelRequestPayload,
    CreateVacationRequestPayload,
    EquipmentRequestResponse,
    LineItemUpdate,
    RequestResponse,
    UpdateRequestPayload,
)

_MANAGER = {"manager_id": "MGR001", "manager_name": "John Smith"}


def test_travel_payload_defaults() -> None:
    payload = CreateTravelRequestPayload.model_validate(
        {
            "request_id": "TR-1",
            "travel_information": {"destination": "Oslo", "start_date": "2026-03-01", "end_date": "2026-03-03"},
            "approving_manager": _MANAGER,
        }
    )
    assert payload.status is None
    assert payload.expenses.food_costs == []
    assert payload.submitter is None


def test_travel_payload_rejects_reversed_dates() -> None:
    with pytest.raises(ValidationError, match="end_date"):
        CreateTravelRequestPayload.model_validate(
            {
                "request_id": "TR-1",
                "travel_information": {"destination": "Oslo", "start_date": "2026-03-03", "end_date": "2026-03-01"},
                "approving_manager": _MANAGER,
            }
        )


@pytest.mark.parametrize("missing", ["request_id", "user_id", "manager_id", "substitute_id"])
def test_vacation_payload_requires_identifiers(missing: str) -> None:
    data = {
        "request_id": "VR-1",
        "user_id": "USR001",
        "manager_id": "MGR001",
        "substitute_id": "USR002",
        "start_date": "2026-07-01",
        "end_date": "2026-07-10",
    }
    del data[missing]
    with pytest.raises(ValidationError):
        CreateVacationRequestPayload.model_validate(data)


def test_vacation_payload_rejects_empty_substitute() -> None:
    with pytest.raises(ValidationError):
        CreateVacationRequestPayload(
            request_id="VR-1",
            user_id="USR001",
            manager_id="MGR001",
            substitute_id="",
            start_date=date(2026, 7, 1),
            end_date=date(2026, 7, 10),
        )


def test_equipment_payload_requires_items() -> None:
    with pytest.raises(ValidationError):
        CreateEquipmentRequestPayload(request_id="EQ-1", approving_manager=_MANAGER, equipment_items=[])


def test_equipment_payload_rejects_negative_cost() -> None:
    with pytest.raises(ValidationError):
        CreateEquipmentRequestPayload.model_validate(
            {
                "request_id": "EQ-1",
                "approving_manager": _MANAGER,
                "equipment_items": [{"type": "Hardware", "name": "Mouse", "cost": "-1"}],
            }
        )


def test_line_item_update_defaults_to_rejected() -> None:
    update = LineItemUpdate(id=uuid.uuid4())
    assert update.status is LineItemStatus.REJECTED
    assert update.rejection_reason is None


def test_update_payload_forbids_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        UpdateRequestPayload.model_validate({"status": "APPROVED"})


def test_update_payload_tracks_set_fields() -> None:
    payload = UpdateRequestPayload(manager_id="MGR002")
    assert payload.model_dump(exclude_unset=True) == {"manager_id": "MGR002"}


def test_availability_check_rejects_reversed_dates() -> None:
    with pytest.raises(ValidationError):
        AvailabilityCheckPayload(user_id="USR001", start_date=date(2026, 1, 2), end_date=date(2026, 1, 1))


def test_request_response_discriminates_on_request_type() -> None:
    now = datetime.now(UTC)
    adapter: TypeAdapter[RequestResponse] = TypeAdapter(RequestResponse)
    parsed = adapter.validate_python(
        {
            "request_type": "EQUIPMENT",
            "id": uuid.uuid4(),
            "request_id": "EQ-1",
            "status": "PENDING_APPROVAL",
            "manager_id": "MGR001",
            "manager": None,
            "user_id": None,
            "submitted_date": now,
            "approved_date": None,
            "approved_by": None,
            "rejection_reason": None,
            "created_at": now,
            "updated_at": now,
            "total_cost": Decimal("10.00"),
            "equipment_items": [],
        }
    )
    assert isinstance(parsed, EquipmentRequestResponse)
