"""Tests for the audit trail of a request."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from request_desk.services.audit import changed_fields

if TYPE_CHECKING:
    from httpx import AsyncClient

USER_HEADERS = {"X-User-Id": "USR001", "X-Role": "USER"}
MANAGER_HEADERS = {"X-User-Id": "MGR002", "X-Role": "MANAGER"}


def test_changed_fields_ignores_update_stamp() -> None:
    before = {"status": "PENDING_APPROVAL", "reason": "x", "updated_at": "2026-01-01T00:00:00"}
    after = {"status": "APPROVED", "reason": "x", "updated_at": "2026-01-02T00:00:00"}
    assert changed_fields(before, after) == ["status"]


def test_changed_fields_of_creation_lists_all_keys() -> None:
    assert changed_fields(None, {"b": 1, "a": None, "c": "x"}) == ["b", "c"]


@pytest.mark.usefixtures("directory")
async def test_trail_covers_request_items_and_comments(async_client: AsyncClient) -> None:
    created = (
        await async_client.post(
            "/requests/vacation",
            json={
                "request_id": "VR-AUD",
                "user_id": "USR001",
                "manager_id": "MGR002",
                "substitute_id": "USR002",
                "start_date": "2026-09-07",
                "end_date": "2026-09-11",
                "attachments": [{"file_name": "plan.pdf"}],
            },
            headers=USER_HEADERS,
        )
    ).json()
    item_id = created["attachments"][0]["id"]

    await async_client.post(
        f"/requests/{created['id']}/comments",
        json={"user_id": "MGR002", "comment": "Approved in principle"},
        headers=MANAGER_HEADERS,
    )
    await async_client.patch(
        f"/requests/VR-AUD/line-items/{item_id}/status", json={"status": "APPROVED"}, headers=MANAGER_HEADERS
    )

    resp = await async_client.get(f"/requests/{created['id']}/audit")

    assert resp.status_code == 200
    trail = resp.json()
    assert trail["request_id"] == "VR-AUD"
    assert [(e["entity_type"], e["action"]) for e in trail["items"]] == [
        ("REQUEST", "CREATE"),
        ("COMMENT", "CREATE"),
        ("LINE_ITEM", "STATUS_CHANGE"),
        ("REQUEST", "AUTO_RESOLVE"),
    ]
    assert trail["items"][0]["actor_id"] == "USR001"
    assert trail["items"][2]["entity_id"] == item_id
    assert trail["items"][2]["changed_fields"] == ["status"]
    assert trail["items"][3]["changed_fields"] == ["status"]
    assert trail["items"][3]["after_json"]["status"] == "APPROVED"


async def test_trail_of_unknown_request_is_404(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/requests/{uuid.uuid4()}/audit")
    assert resp.status_code == 404
