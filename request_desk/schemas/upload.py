# ruff: noqa: TC003
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """A file that was staged and committed under its request and category."""

    file_name: str
    stored_file_name: str
    description: str
    category: str
    file_size: int
    file_size_formatted: str
    file_type: str
    file_url: str
    upload_date: datetime


class UploadFailure(BaseModel):
    """A file of a batch that was not stored. Nothing of it is left behind."""

    file_name: str
    error: str
    detail: str


class BatchUploadResponse(BaseModel):
    uploaded: list[UploadResponse]
    failed: list[UploadFailure]
    total: int
