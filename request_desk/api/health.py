import asyncio
import logging
import os
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from request_desk.api.deps import StoreDep
from request_desk.config import get_settings
from request_desk.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CheckStatus = Literal["ok", "error"]


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    database: CheckStatus
    storage: CheckStatus


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep, store: StoreDep) -> HealthResponse:
    """Report API health; degraded when the database or upload storage is unusable."""
    settings = get_settings()

    database: CheckStatus = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = "error"

    storage: CheckStatus = "ok"
    if not await asyncio.to_thread(os.access, store.temp_dir, os.W_OK):
        logger.error("Health check: upload directory %s is not writable", store.temp_dir)
        storage = "error"

    return HealthResponse(
        status="ok" if database == storage == "ok" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        storage=storage,
    )
