"""Filesystem storage for request attachments.

Uploads land in ``{root}/temp`` first and are moved to
``{root}/{request_id}/{category_dir}`` once the upload is bound to a request,
so a file is never visible at its final path while partially written.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

from request_desk.config import get_settings
from request_desk.exceptions import (
    NotFound,
    PayloadTooLarge,
    StorageIOError,
    UnsupportedMediaType,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

logger = logging.getLogger(__name__)

TEMP_DIR = "temp"
MISC_DIR = "misc"

CATEGORY_DIRECTORIES: dict[str, str] = {
    "foodCosts": "food-costs",
    "travelCosts": "travel-costs",
    "stayCosts": "stay-costs",
}
_SLUG_TO_CATEGORY = {slug: key for key, slug in CATEGORY_DIRECTORIES.items()}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_MAX_STEM_LENGTH = 50
_CHUNK_SIZE = 64 * 1024


def category_directory(category: str | None) -> str:
    """Map an internal category key to its directory; unknown categories go to ``misc``."""
    if category is None:
        return MISC_DIR
    return CATEGORY_DIRECTORIES.get(category, MISC_DIR)


def category_from_slug(slug: str) -> str:
    """Map a URL slug (``food-costs``) back to its internal key; unknown slugs pass through."""
    return _SLUG_TO_CATEGORY.get(slug, slug)


def format_file_size(size: int) -> str:
    """Human-readable size, e.g. ``1.5 KB``."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def generate_stored_name(original_name: str) -> str:
    """Build a filesystem-safe unique name that keeps the original extension."""
    base = PurePath(original_name.replace("\\", "/")).name
    suffix = PurePath(base).suffix
    stem = base[: -len(suffix)] if suffix else base
    safe_stem = _UNSAFE_CHARS.sub("_", stem)[:_MAX_STEM_LENGTH] or "file"
    safe_suffix = "." + _UNSAFE_CHARS.sub("_", suffix[1:]) if suffix else ""
    timestamp = int(time.time() * 1000)
    return f"{safe_stem}_{timestamp}_{secrets.token_hex(8)}{safe_suffix}"


def _check_name(name: str) -> str:
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\x00" in name:
        raise ValidationError(f"Invalid file name: {name!r}")
    return name


@dataclass(frozen=True)
class StagedFile:
    """A file written to the temp area and not yet bound to a request."""

    stored_name: str
    original_name: str
    size: int
    content_type: str


class AttachmentStore:
    """Path-addressable storage for uploaded files, namespaced by request and category."""

    def __init__(
        self,
        root: Path,
        max_bytes: int,
        allowed_types: Iterable[str],
    ) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)

    @property
    def temp_dir(self) -> Path:
        return self.root / TEMP_DIR

    async def initialize(self) -> None:
        """Create the upload root and temp area."""
        await asyncio.to_thread(self.temp_dir.mkdir, parents=True, exist_ok=True)
        logger.info("Upload directory ready at %s", self.root)

    # -- staging ------------------------------------------------------------

    def check_constraints(self, content_type: str | None, size: int) -> None:
        """Raise if the upload violates the MIME allow-list or size ceiling."""
        if content_type not in self.allowed_types:
            raise UnsupportedMediaType(
                "Invalid file type. Only PDF, images, and Office documents are allowed."
            )
        if size > self.max_bytes:
            raise PayloadTooLarge(f"File size exceeds {format_file_size(self.max_bytes)} limit")

    async def stage(self, original_name: str, content_type: str | None, data: bytes) -> StagedFile:
        """Validate an upload and write it to the temp area under a generated name."""
        self.check_constraints(content_type, len(data))
        stored_name = generate_stored_name(original_name)
        path = self.temp_dir / stored_name

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageIOError(f"Failed to stage file: {exc.strerror or exc}") from exc
        return StagedFile(
            stored_name=stored_name,
            original_name=original_name,
            size=len(data),
            content_type=content_type or "",
        )

    async def discard(self, stored_name: str) -> None:
        """Remove a staged file that will not be committed. Missing files are ignored."""
        path = self.temp_dir / _check_name(stored_name)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError:
            logger.warning("Could not remove staged file %s", path, exc_info=True)

    async def commit(self, stored_name: str, category: str | None, request_id: str) -> Path:
        """Move a staged file to its permanent ``{request_id}/{category_dir}`` location."""
        source = self.temp_dir / _check_name(stored_name)
        target = self.resolve(stored_name, category, request_id)

        def _move() -> None:
            if not source.is_file():
                raise FileNotFoundError(source)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(source, target)

        try:
            await asyncio.to_thread(_move)
        except FileNotFoundError as exc:
            raise StorageIOError(f"Staged file {stored_name} does not exist") from exc
        except OSError as exc:
            raise StorageIOError(f"Failed to save file: {exc.strerror or exc}") from exc
        return target

    # -- committed files ----------------------------------------------------

    def resolve(self, filename: str, category: str | None, request_id: str) -> Path:
        """Compute the permanent path of a file. Does not touch the filesystem."""
        return self.root / _check_name(request_id) / category_directory(category) / _check_name(filename)

    async def exists(self, filename: str, category: str | None, request_id: str) -> bool:
        return await asyncio.to_thread(self.resolve(filename, category, request_id).is_file)

    async def size(self, filename: str, category: str | None, request_id: str) -> int:
        path = self.resolve(filename, category, request_id)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError as exc:
            raise NotFound("The requested file does not exist") from exc
        except OSError as exc:
            raise StorageIOError(f"Error reading file: {exc.strerror or exc}") from exc
        return stat.st_size

    async def stream(self, filename: str, category: str | None, request_id: str) -> AsyncIterator[bytes]:
        """Yield the file content in chunks."""
        path = self.resolve(filename, category, request_id)
        try:
            handle = await asyncio.to_thread(path.open, "rb")
        except FileNotFoundError as exc:
            raise NotFound("The requested file does not exist") from exc
        except OSError as exc:
            raise StorageIOError(f"Error serving file: {exc.strerror or exc}") from exc
        try:
            while chunk := await asyncio.to_thread(handle.read, _CHUNK_SIZE):
                yield chunk
        finally:
            await asyncio.to_thread(handle.close)

    async def delete(self, filename: str, category: str | None, request_id: str) -> None:
        """Delete a committed file. Raises NotFound when it is already gone."""
        path = self.resolve(filename, category, request_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as exc:
            raise NotFound("The requested file does not exist") from exc
        except OSError as exc:
            raise StorageIOError(f"Error deleting file: {exc.strerror or exc}") from exc

    def public_url(self, filename: str, category: str | None, request_id: str, origin: str) -> str:
        """Client-facing URL of a committed file."""
        return f"{origin.rstrip('/')}/files/{request_id}/{category_directory(category)}/{filename}"


_attachment_store: AttachmentStore | None = None


def get_attachment_store() -> AttachmentStore:
    """FastAPI dependency for the attachment store, built from settings on first use."""
    global _attachment_store
    if _attachment_store is None:
        settings = get_settings()
        _attachment_store = AttachmentStore(
            settings.upload_dir,
            max_bytes=settings.max_upload_bytes,
            allowed_types=settings.allowed_upload_types,
        )
    return _attachment_store


def set_attachment_store(store: AttachmentStore | None) -> None:
    """Override the store (for testing or alternative roots)."""
    global _attachment_store
    _attachment_store = store
