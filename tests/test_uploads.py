"""Tests for uploading, serving and deleting attachment files over HTTP."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from request_desk.config import get_settings
from request_desk.exceptions import StorageIOError

if TYPE_CHECKING:
    from httpx import AsyncClient, Response

    from request_desk.services.storage import AttachmentStore

PDF_BYTES = b"%PDF-1.4 receipt"


async def _upload(
    client: AsyncClient,
    data: dict[str, str],
    content: bytes = PDF_BYTES,
    filename: str = "receipt.pdf",
    content_type: str = "application/pdf",
) -> Response:
    return await client.post("/uploads", data=data, files={"file": (filename, content, content_type)})


async def test_upload_serve_and_delete(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await _upload(
        async_client,
        {"category": "foodCosts", "description": "Team dinner", "request_id": "TR-1"},
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["file_name"] == "receipt.pdf"
    assert data["stored_file_name"].startswith("receipt_")
    assert data["category"] == "foodCosts"
    assert data["file_size"] == len(PDF_BYTES)
    assert data["file_size_formatted"] == f"{len(PDF_BYTES)} Bytes"
    assert data["file_type"] == "application/pdf"
    assert data["file_url"] == f"http://test/files/TR-1/food-costs/{data['stored_file_name']}"
    assert list(store.temp_dir.iterdir()) == []

    served = await async_client.get(f"/files/TR-1/food-costs/{data['stored_file_name']}")
    assert served.status_code == 200
    assert served.content == PDF_BYTES
    assert served.headers["content-type"] == "application/pdf"
    assert served.headers["content-length"] == str(len(PDF_BYTES))

    deleted = await async_client.delete(f"/files/TR-1/food-costs/{data['stored_file_name']}")
    assert deleted.status_code == 204
    assert (await async_client.get(f"/files/TR-1/food-costs/{data['stored_file_name']}")).status_code == 404


async def test_upload_of_unknown_category_lands_in_misc(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await _upload(
        async_client,
        {"category": "attachments", "description": "Doctor's note", "request_id": "VR-1"},
        filename="note.png",
        content_type="image/png",
    )

    assert resp.status_code == 201
    stored_name = resp.json()["stored_file_name"]
    assert (store.root / "VR-1" / "misc" / stored_name).is_file()
    served = await async_client.get(f"/files/VR-1/misc/{stored_name}")
    assert served.headers["content-type"] == "image/png"


async def test_upload_uses_configured_public_origin(
    async_client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(get_settings(), "public_base_url", "https://files.example.com")

    resp = await _upload(async_client, {"category": "stayCosts", "description": "Hotel", "request_id": "TR-9"})

    assert resp.json()["file_url"].startswith("https://files.example.com/files/TR-9/stay-costs/")


async def test_upload_without_file_is_400(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/uploads", data={"category": "foodCosts", "description": "x", "request_id": "TR-1"}
    )
    assert resp.status_code == 400


async def test_upload_missing_fields_discards_staged_file(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await _upload(async_client, {"category": "foodCosts", "request_id": "TR-1"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Category, description, and request_id are required"
    assert list(store.temp_dir.iterdir()) == []
    assert not (store.root / "TR-1").exists()


async def test_upload_disallowed_type_is_415(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await _upload(
        async_client,
        {"category": "foodCosts", "description": "Script", "request_id": "TR-1"},
        filename="run.sh",
        content_type="text/x-shellscript",
    )

    assert resp.status_code == 415
    assert list(store.temp_dir.iterdir()) == []


async def test_upload_too_large_is_413(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await _upload(
        async_client,
        {"category": "foodCosts", "description": "Huge", "request_id": "TR-1"},
        content=b"x" * (store.max_bytes + 10),
    )

    assert resp.status_code == 413
    assert list(store.temp_dir.iterdir()) == []


async def test_get_missing_file_is_404(async_client: AsyncClient) -> None:
    resp = await async_client.get("/files/TR-1/food-costs/nothing_here.pdf")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "The requested file does not exist"


async def test_delete_missing_file_is_404(async_client: AsyncClient) -> None:
    resp = await async_client.delete("/files/TR-1/food-costs/nothing_here.pdf")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Batch uploads
# ---------------------------------------------------------------------------


def _file(filename: str, content: bytes = PDF_BYTES, content_type: str = "application/pdf") -> tuple[str, tuple]:
    return ("files", (filename, content, content_type))


async def test_batch_upload_reports_stored_and_rejected_files(
    async_client: AsyncClient, store: AttachmentStore
) -> None:
    resp = await async_client.post(
        "/uploads/batch",
        data={"category": "foodCosts", "request_id": "TR-B", "descriptions": ["Lunch", "Script"]},
        files=[
            _file("lunch.pdf"),
            _file("run.sh", b"#!/bin/sh", "text/x-shellscript"),
            _file("huge.pdf", b"x" * (store.max_bytes + 10)),
            _file("taxi.png", b"\x89PNG", "image/png"),
        ],
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["total"] == 4
    assert [u["file_name"] for u in data["uploaded"]] == ["lunch.pdf", "taxi.png"]
    assert [u["description"] for u in data["uploaded"]] == ["Lunch", "No description provided"]
    assert [(f["file_name"], f["error"]) for f in data["failed"]] == [
        ("run.sh", "UnsupportedMediaType"),
        ("huge.pdf", "PayloadTooLarge"),
    ]
    assert list(store.temp_dir.iterdir()) == []
    stored = sorted(p.name for p in (store.root / "TR-B" / "food-costs").iterdir())
    assert stored == sorted(u["stored_file_name"] for u in data["uploaded"])

    served = await async_client.get(data["uploaded"][0]["file_url"].removeprefix("http://test"))
    assert served.content == PDF_BYTES


async def test_batch_upload_discards_file_that_cannot_be_moved(
    async_client: AsyncClient, store: AttachmentStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _broken_commit(stored_name: str, category: str | None, request_id: str) -> None:
        raise StorageIOError("Failed to save file: disk full")

    monkeypatch.setattr(store, "commit", _broken_commit)

    resp = await async_client.post(
        "/uploads/batch",
        data={"category": "stayCosts", "request_id": "TR-B"},
        files=[_file("hotel.pdf")],
    )

    assert resp.status_code == 201
    assert resp.json()["uploaded"] == []
    assert resp.json()["failed"] == [
        {"file_name": "hotel.pdf", "error": "StorageIOError", "detail": "Failed to save file: disk full"}
    ]
    assert list(store.temp_dir.iterdir()) == []


async def test_batch_upload_is_capped_at_ten_files(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await async_client.post(
        "/uploads/batch",
        data={"category": "foodCosts", "request_id": "TR-B"},
        files=[_file(f"receipt-{n}.pdf") for n in range(11)],
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "At most 10 files can be uploaded at once"
    assert list(store.temp_dir.iterdir()) == []
    assert not (store.root / "TR-B").exists()


async def test_batch_upload_accepts_ten_files(async_client: AsyncClient, store: AttachmentStore) -> None:
    resp = await async_client.post(
        "/uploads/batch",
        data={"category": "travelCosts", "request_id": "TR-B"},
        files=[_file(f"ticket-{n}.pdf") for n in range(10)],
    )

    assert resp.status_code == 201
    assert len(resp.json()["uploaded"]) == 10
    assert len(list((store.root / "TR-B" / "travel-costs").iterdir())) == 10


@pytest.mark.parametrize(
    ("data", "with_files"),
    [
        ({"category": "foodCosts", "request_id": "TR-B"}, False),
        ({"request_id": "TR-B"}, True),
        ({"category": "foodCosts"}, True),
    ],
)
async def test_batch_upload_requires_files_and_metadata(
    async_client: AsyncClient, store: AttachmentStore, data: dict[str, str], with_files: bool
) -> None:
    files = [_file("receipt.pdf")] if with_files else None
    resp = await async_client.post("/uploads/batch", data=data, files=files)

    assert resp.status_code == 400
    assert list(store.temp_dir.iterdir()) == []
