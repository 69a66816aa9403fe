"""Tests for listing and checking user availability."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest

from request_desk.exceptions import ValidationError
from request_desk.models.availability import Availability
from request_desk.models.enums import AvailabilityType
from request_desk.services.availability import list_availability

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
async def periods(db_session: AsyncSession) -> None:
    db_session.add_all(
        [
            Availability(
                user_id="USR001",
                start_date=date(2026, 7, 6),
                end_date=date(2026, 7, 17),
                availability_type=AvailabilityType.VACATION.value,
                reason="Summer break",
            ),
            Availability(
                user_id="USR001",
                start_date=date(2026, 2, 9),
                end_date=date(2026, 2, 10),
                availability_type=AvailabilityType.SICK.value,
            ),
            Availability(
                user_id="USR002",
                start_date=date(2026, 7, 1),
                end_date=date(2026, 7, 31),
                availability_type=AvailabilityType.OTHER.value,
                reason="Sabbatical",
            ),
        ]
    )
    await db_session.commit()


@pytest.mark.usefixtures("periods")
async def test_list_availability_ordered_by_start(async_client: AsyncClient) -> None:
    resp = await async_client.get("/availability", params={"user_id": "USR001"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [p["start_date"] for p in data["items"]] == ["2026-02-09", "2026-07-06"]


@pytest.mark.usefixtures("periods")
async def test_list_availability_filters_by_type(async_client: AsyncClient) -> None:
    resp = await async_client.get("/availability", params={"user_id": "USR001", "type": "SICK"})
    assert [p["availability_type"] for p in resp.json()["items"]] == ["SICK"]


async def test_list_availability_requires_user_id(async_client: AsyncClient, db_session: AsyncSession) -> None:
    resp = await async_client.get("/availability")
    assert resp.status_code == 422

    with pytest.raises(ValidationError):
        await list_availability(db_session, "")


@pytest.mark.usefixtures("periods")
@pytest.mark.parametrize(
    ("start", "end", "available"),
    [
        ("2026-07-20", "2026-07-24", True),
        ("2026-07-17", "2026-07-20", False),
        ("2026-07-01", "2026-07-06", False),
        ("2026-07-08", "2026-07-09", False),
        ("2026-01-01", "2026-12-31", False),
        ("2026-02-11", "2026-07-05", True),
    ],
)
async def test_check_availability_overlap_is_inclusive(
    async_client: AsyncClient, start: str, end: str, available: bool
) -> None:
    resp = await async_client.post(
        "/availability/check", json={"user_id": "USR001", "start_date": start, "end_date": end}
    )

    assert resp.status_code == 200
    assert resp.json()["available"] is available


@pytest.mark.usefixtures("periods")
async def test_check_availability_reports_conflicts(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/availability/check",
        json={"user_id": "USR001", "start_date": "2026-01-01", "end_date": "2026-12-31"},
    )

    conflicts = resp.json()["conflicts"]
    assert [c["reason"] for c in conflicts] == [None, "Summer break"]


async def test_check_availability_rejects_reversed_range(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/availability/check",
        json={"user_id": "USR001", "start_date": "2026-03-10", "end_date": "2026-03-01"},
    )
    assert resp.status_code == 422
