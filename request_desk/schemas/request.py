# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from request_desk.models.enums import LineItemStatus, RequestStatus
from request_desk.schemas.manager import ManagerResponse

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class ApprovingManager(BaseModel):
    """Manager reference sent with travel and equipment requests."""

    manager_id: str = Field(min_length=1, max_length=100)
    manager_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)


class Submitter(BaseModel):
    user_id: str | None = Field(default=None, max_length=100)
    submitted_by: str | None = Field(default=None, max_length=255)
    submitted_by_email: str | None = Field(default=None, max_length=255)


class TravelInformation(BaseModel):
    destination: str = Field(min_length=1, max_length=255)
    start_date: date
    end_date: date
    reason: str | None = None
    duration: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class AttachmentPayload(BaseModel):
    """Metadata of a file already uploaded through ``POST /uploads``."""

    file_name: str = Field(min_length=1, max_length=255)
    description: str = ""
    file_size: int | None = Field(default=None, ge=0)
    file_type: str | None = Field(default=None, max_length=255)
    upload_date: datetime | None = None
    file_url: str | None = None


class TravelExpenses(BaseModel):
    food_costs: list[AttachmentPayload] = Field(default_factory=list)
    travel_costs: list[AttachmentPayload] = Field(default_factory=list)
    stay_costs: list[AttachmentPayload] = Field(default_factory=list)


class CreateTravelRequestPayload(BaseModel):
    """Request body for submitting a travel reimbursement request."""

    request_id: str = Field(min_length=1, max_length=100)
    submitted_date: datetime | None = None
    status: RequestStatus | None = None
    submitter: Submitter | None = None
    travel_information: TravelInformation
    approving_manager: ApprovingManager
    expenses: TravelExpenses = Field(default_factory=TravelExpenses)


class CreateVacationRequestPayload(BaseModel):
    """Request body for submitting a vacation request."""

    request_id: str = Field(min_length=1, max_length=100)
    user_id: str = Field(min_length=1, max_length=100)
    manager_id: str = Field(min_length=1, max_length=100)
    substitute_id: str = Field(min_length=1, max_length=100)
    submitted_date: datetime | None = None
    status: RequestStatus | None = None
    vacation_type: str = Field(default="VACATION", max_length=50)
    start_date: date
    end_date: date
    reason: str | None = None
    attachments: list[AttachmentPayload] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class EquipmentItemPayload(BaseModel):
    type: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    amount: int = Field(default=1, ge=1)
    reason: str = ""


class CreateEquipmentRequestPayload(BaseModel):
    """Request body for submitting an equipment purchase request."""

    request_id: str = Field(min_length=1, max_length=100)
    submitted_date: datetime | None = None
    status: RequestStatus | None = None
    user_id: str | None = Field(default=None, max_length=100)
    approving_manager: ApprovingManager
    equipment_items: list[EquipmentItemPayload] = Field(min_length=1)
    total_cost: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class LineItemUpdate(BaseModel):
    """Per-item decision sent along with a PARTIALLY_REJECTED status change."""

    id: uuid.UUID
    status: LineItemStatus = LineItemStatus.REJECTED
    rejection_reason: str | None = None


class StatusUpdatePayload(BaseModel):
    """Request body for an explicit request status change.

    ``status`` is validated by the approval engine so that unknown values
    surface as ``InvalidStatus`` rather than a schema error.
    """

    status: str
    approved_by: str | None = Field(default=None, max_length=255)
    rejection_reason: str | None = None
    line_item_updates: list[LineItemUpdate] | None = None


class LineItemStatusPayload(BaseModel):
    """Request body for approving or rejecting a single line item."""

    status: str
    rejection_reason: str | None = None
    category: str | None = None


class UpdateRequestPayload(BaseModel):
    """Partial update of the mutable request fields (e.g. forwarding to another manager)."""

    model_config = ConfigDict(extra="forbid")

    manager_id: str | None = Field(default=None, min_length=1, max_length=100)
    destination: str | None = Field(default=None, max_length=255)
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None
    duration: str | None = Field(default=None, max_length=100)
    vacation_type: str | None = Field(default=None, max_length=50)
    substitute_id: str | None = Field(default=None, min_length=1, max_length=100)
    submitted_by: str | None = Field(default=None, max_length=255)
    submitted_by_email: str | None = Field(default=None, max_length=255)


class CommentPayload(BaseModel):
    user_id: str = Field(min_length=1, max_length=100)
    comment: str = Field(min_length=1, max_length=4000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AttachmentResponse(BaseModel):
    """Response schema for a file line item."""

    id: uuid.UUID
    category: str
    file_name: str
    file_url: str | None
    file_size: int | None
    file_type: str | None
    description: str
    upload_date: datetime
    status: LineItemStatus
    rejection_reason: str | None
    updated_at: datetime


class EquipmentItemResponse(BaseModel):
    """Response schema for an equipment line item."""

    id: uuid.UUID
    type: str
    name: str
    cost: Decimal
    amount: int
    reason: str
    status: LineItemStatus
    rejection_reason: str | None
    updated_at: datetime


class CommentResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    comment: str
    created_at: datetime


class _RequestResponseBase(BaseModel):
    id: uuid.UUID
    request_id: str
    status: RequestStatus
    manager_id: str
    manager: ManagerResponse | None
    user_id: str | None
    submitted_date: datetime
    approved_date: datetime | None
    approved_by: str | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime


class TravelRequestResponse(_RequestResponseBase):
    request_type: Literal["TRAVEL"] = "TRAVEL"
    submitted_by: str | None
    submitted_by_email: str | None
    destination: str | None
    start_date: date | None
    end_date: date | None
    reason: str | None
    duration: str | None
    food_costs: list[AttachmentResponse]
    travel_costs: list[AttachmentResponse]
    stay_costs: list[AttachmentResponse]


class VacationRequestResponse(_RequestResponseBase):
    request_type: Literal["VACATION"] = "VACATION"
    substitute_id: str | None
    vacation_type: str | None
    start_date: date | None
    end_date: date | None
    reason: str | None
    attachments: list[AttachmentResponse]
    comments: list[CommentResponse]


class EquipmentRequestResponse(_RequestResponseBase):
    request_type: Literal["EQUIPMENT"] = "EQUIPMENT"
    total_cost: Decimal | None
    equipment_items: list[EquipmentItemResponse]


RequestResponse = Annotated[
    TravelRequestResponse | VacationRequestResponse | EquipmentRequestResponse,
    Field(discriminator="request_type"),
]


class RequestListResponse(BaseModel):
    """Paginated list of requests of any type."""

    items: list[RequestResponse]
    total: int


class LineItemStatusResponse(BaseModel):
    """Updated line item together with the (possibly aggregated) request status."""

    item: AttachmentResponse | EquipmentItemResponse
    request_status: RequestStatus
