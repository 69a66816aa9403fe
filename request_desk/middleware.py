from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.middleware.base import RequestResponseEndpoint
    from starlette.requests import Request
    from starlette.responses import Response

    from request_desk.config import Settings

logger = logging.getLogger("request_desk.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, duration and acting user of every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        actor = request.headers.get("x-user-id", "-")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed actor=%s", request.method, request.url.path, actor)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %d %.1fms actor=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            actor,
        )
        return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware."""
    app.add_middleware(AccessLogMiddleware)  # ty: ignore[invalid-argument-type]
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        # File downloads read these from JavaScript.
        expose_headers=["Content-Disposition", "Content-Length"],
    )
