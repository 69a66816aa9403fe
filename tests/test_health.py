from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from request_desk.db import get_session
from request_desk.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from request_desk.services.storage import AttachmentStore


async def test_health_returns_200(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["database"] == "ok"
    assert data["storage"] == "ok"
    assert set(data.keys()) == {"status", "version", "environment", "database", "storage"}


async def test_health_degraded_without_upload_directory(async_client: AsyncClient, store: AttachmentStore) -> None:
    shutil.rmtree(store.root)

    data = (await async_client.get("/health")).json()

    assert data["status"] == "degraded"
    assert data["storage"] == "error"
    assert data["database"] == "ok"


@pytest.mark.usefixtures("store")
async def test_health_degraded_on_db_failure() -> None:
    """GET /health returns degraded status when the database is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == "error"
    finally:
        app.dependency_overrides.clear()


async def test_requests_are_access_logged(async_client: AsyncClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="request_desk.access"):
        await async_client.get("/health", headers={"X-User-Id": "USR001"})
    assert "GET /health 200" in caplog.text
    assert "actor=USR001" in caplog.text
