# ruff: noqa: B008, TC003
from __future__ import annotations

import logging
import mimetypes

from fastapi import APIRouter, File, Form, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from request_desk.api.deps import StoreDep
from request_desk.config import get_settings
from request_desk.exceptions import AppError, NotFound, ValidationError
from request_desk.models.base import now_utc
from request_desk.schemas.upload import BatchUploadResponse, UploadFailure, UploadResponse
from request_desk.services.storage import AttachmentStore, StagedFile, category_from_slug, format_file_size

logger = logging.getLogger(__name__)

uploads_router = APIRouter(prefix="/uploads", tags=["files"])
files_router = APIRouter(prefix="/files", tags=["files"])

DEFAULT_DESCRIPTION = "No description provided"


def _public_origin(request: Request) -> str:
    return get_settings().public_base_url or str(request.base_url)


async def _commit_upload(
    store: AttachmentStore,
    staged: StagedFile,
    category: str,
    description: str,
    request_id: str,
    origin: str,
) -> UploadResponse:
    """Move a staged file under its request and category. A failed move discards the staged copy."""
    try:
        await store.commit(staged.stored_name, category, request_id)
    except Exception:
        await store.discard(staged.stored_name)
        raise

    logger.info("Stored %s for request %s in %s", staged.stored_name, request_id, category)
    return UploadResponse(
        file_name=staged.original_name,
        stored_file_name=staged.stored_name,
        description=description,
        category=category,
        file_size=staged.size,
        file_size_formatted=format_file_size(staged.size),
        file_type=staged.content_type,
        file_url=store.public_url(staged.stored_name, category, request_id, origin),
        upload_date=now_utc(),
    )


@uploads_router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    store: StoreDep,
    file: UploadFile | None = File(default=None),
    category: str | None = Form(default=None),
    description: str | None = Form(default=None),
    request_id: str | None = Form(default=None),
) -> UploadResponse:
    """Stage an uploaded file and move it under its request and category."""
    if file is None:
        raise ValidationError("Please select a file to upload")

    # One byte past the ceiling is enough to detect an oversized upload.
    data = await file.read(store.max_bytes + 1)
    staged = await store.stage(file.filename or "file", file.content_type, data)

    if not category or not description or not request_id:
        await store.discard(staged.stored_name)
        raise ValidationError("Category, description, and request_id are required")

    return await _commit_upload(store, staged, category, description, request_id, _public_origin(request))


@uploads_router.post("/batch", response_model=BatchUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_files(
    request: Request,
    store: StoreDep,
    files: list[UploadFile] | None = File(default=None),
    category: str | None = Form(default=None),
    request_id: str | None = Form(default=None),
    descriptions: list[str] | None = Form(default=None),
) -> BatchUploadResponse:
    """Store several files under one request and category.

    Files are handled one by one; a file that is rejected or cannot be moved
    is reported in ``failed`` and leaves nothing behind.
    """
    if not files:
        raise ValidationError("Please select files to upload")
    max_files = get_settings().max_batch_files
    if len(files) > max_files:
        raise ValidationError(f"At most {max_files} files can be uploaded at once")
    if not category or not request_id:
        raise ValidationError("Category and request_id are required")

    descriptions = descriptions or []
    origin = _public_origin(request)
    uploaded: list[UploadResponse] = []
    failed: list[UploadFailure] = []
    for index, file in enumerate(files):
        original_name = file.filename or "file"
        description = descriptions[index] if index < len(descriptions) and descriptions[index] else DEFAULT_DESCRIPTION
        try:
            data = await file.read(store.max_bytes + 1)
            staged = await store.stage(original_name, file.content_type, data)
            uploaded.append(await _commit_upload(store, staged, category, description, request_id, origin))
        except AppError as exc:
            logger.warning("Rejected %s in batch upload for request %s: %s", original_name, request_id, exc.message)
            failed.append(UploadFailure(file_name=original_name, error=type(exc).__name__, detail=exc.message))

    return BatchUploadResponse(uploaded=uploaded, failed=failed, total=len(files))


@files_router.get("/{request_id}/{category_slug}/{filename}")
async def get_file(
    request_id: str,
    category_slug: str,
    filename: str,
    store: StoreDep,
) -> StreamingResponse:
    """Serve a committed file."""
    category = category_from_slug(category_slug)
    if not await store.exists(filename, category, request_id):
        raise NotFound("The requested file does not exist")
    size = await store.size(filename, category, request_id)
    return StreamingResponse(
        store.stream(filename, category, request_id),
        media_type=mimetypes.guess_type(filename)[0] or "application/octet-stream",
        headers={
            "Content-Length": str(size),
            "Content-Disposition": f'inline; filename="{filename}"',
        },
    )


@files_router.delete("/{request_id}/{category_slug}/{filename}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    request_id: str,
    category_slug: str,
    filename: str,
    store: StoreDep,
) -> Response:
    """Delete a committed file."""
    await store.delete(filename, category_from_slug(category_slug), request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
