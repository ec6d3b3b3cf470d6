"""
PaintSnap Backend — Image Blob Store
======================================

What:  Validates, stores, serves and releases photo and tag-swatch images.
Why:   Image bytes stay out of the database; rows keep a storage key only.
How:   Files live under STORAGE_ROOT at `<kind>/YYYY/MM/DD/<uuid>.<ext>`,
       written and read with aiofiles under a hard timeout. Releases run
       once the request transaction commits, retried with tenacity,
       and a final failure is logged and dropped.
Who:   Built by create_app(); used by photo and tag routes.

Upload checks (cheapest first):
    1. Non-empty
    2. Size ≤ MAX_FILE_SIZE (Content-Length first, then actual bytes)
    3. Content sniffed with Pillow: JPEG, PNG or WebP only
    4. Stored under a UUID name (no user input in the path)
"""

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Tuple

import aiofiles
import aiofiles.os
from PIL import Image, UnidentifiedImageError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from paintsnap.config import Settings
from paintsnap.exceptions import (
    BlobStorageError,
    DependencyTimeoutError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEPENDENCY_NAME = "image storage"

# Pillow format name → (content type, file extension)
ALLOWED_FORMATS = {
    "JPEG": ("image/jpeg", ".jpg"),
    "PNG": ("image/png", ".png"),
    "WEBP": ("image/webp", ".webp"),
}

PHOTO_KIND = "photos"
TAG_KIND = "tags"


@dataclass(frozen=True)
class StoredBlob:
    key: str
    content_type: str
    size_bytes: int


class BlobStore:
    """
    Local-filesystem blob store.

    Directory Structure:
        storage/
        ├── photos/2025/03/14/3f2a....jpg
        └── tags/2025/03/14/9c1e....png
    """

    def __init__(
        self,
        storage_root: str,
        max_file_size: int,
        timeout: float = 15.0,
        cleanup_attempts: int = 3,
        cleanup_min_wait: float = 0.5,
        cleanup_max_wait: float = 5.0,
    ):
        self.storage_root = Path(storage_root).resolve()
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.cleanup_attempts = cleanup_attempts
        self.cleanup_min_wait = cleanup_min_wait
        self.cleanup_max_wait = cleanup_max_wait

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlobStore":
        return cls(
            storage_root=settings.storage_root,
            max_file_size=settings.max_file_size,
            timeout=settings.storage_timeout_seconds,
            cleanup_attempts=settings.blob_cleanup_attempts,
            cleanup_min_wait=settings.blob_cleanup_min_wait,
            cleanup_max_wait=settings.blob_cleanup_max_wait,
        )

    def start(self) -> None:
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("Blob store root: %s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        max_mb = self.max_file_size / (1024 * 1024)
        if actual_size == 0:
            raise ValidationError(message="The uploaded file is empty.", field="image")
        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )
        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def detect_format(self, content: bytes) -> Tuple[str, str]:
        """
        Identify the image type from its bytes.

        Returns:
            (content_type, extension)

        Raises:
            ValidationError: not an image, corrupt, or not JPEG/PNG/WebP
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise ValidationError(
                message="The uploaded file is not a valid image. Please upload a JPEG, PNG or WebP.",
                field="image",
                context={"error": type(e).__name__},
            )

        if image_format not in ALLOWED_FORMATS:
            raise ValidationError(
                message=(
                    f"Image type '{image_format}' is not supported. "
                    "Allowed types: JPEG, PNG, WebP."
                ),
                field="image",
                context={"detected_format": image_format, "allowed": sorted(ALLOWED_FORMATS)},
            )
        return ALLOWED_FORMATS[image_format]

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_key(self, kind: str, extension: str) -> str:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        return f"{kind}/{date_dir}/{uuid.uuid4()}{extension}"

    def path_for(self, key: str) -> Path:
        """Resolve a storage key, refusing anything outside the storage root."""
        path = (self.storage_root / key).resolve()
        if not path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid storage key", context={"key": key})
        return path

    async def put(
        self,
        kind: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> StoredBlob:
        """Validate `content` and write it under a fresh key."""
        self.validate_size(content_length, len(content))
        content_type, extension = self.detect_format(content)
        key = self._generate_key(kind, extension)
        path = self.path_for(key)

        try:
            await asyncio.wait_for(self._write(path, content), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Timed out writing blob %s", key)
            raise DependencyTimeoutError(DEPENDENCY_NAME, self.timeout)
        except OSError as e:
            logger.error("Failed to store blob at %s: %s", path, str(e))
            raise BlobStorageError(
                message="Failed to save the uploaded image. Please try again.",
                context={"key": key, "os_error": str(e)},
            )

        logger.info("Blob stored: %s (%d bytes, %s)", key, len(content), content_type)
        return StoredBlob(key=key, content_type=content_type, size_bytes=len(content))

    async def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)

    async def read(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            return await asyncio.wait_for(self._read(path), timeout=self.timeout)
        except FileNotFoundError:
            raise NotFoundError(resource="image")
        except asyncio.TimeoutError:
            logger.error("Timed out reading blob %s", key)
            raise DependencyTimeoutError(DEPENDENCY_NAME, self.timeout)
        except OSError as e:
            logger.error("Failed to read blob %s: %s", key, str(e))
            raise BlobStorageError(
                message="Could not load the image. Please try again.",
                context={"key": key, "os_error": str(e)},
            )

    async def _read(self, path: Path) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def delete(self, key: str) -> None:
        """Remove one blob. A missing file counts as deleted."""
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
            logger.debug("Blob deleted: %s", key)
        except FileNotFoundError:
            logger.debug("Blob already gone: %s", key)

    # ── Background release ────────────────────────────────────────────────

    async def release(self, keys: Iterable[str]) -> None:
        """
        Delete blobs whose rows are gone. Runs after the commit.

        Each key is retried with exponential backoff; a key that still
        fails is logged and skipped. Never raises.
        """
        for key in keys:
            try:
                async for attempt in AsyncRetrying(
                    retry=retry_if_exception_type(OSError),
                    stop=stop_after_attempt(self.cleanup_attempts),
                    wait=wait_exponential(
                        multiplier=self.cleanup_min_wait,
                        min=self.cleanup_min_wait,
                        max=self.cleanup_max_wait,
                    ),
                    before_sleep=before_sleep_log(logger, logging.WARNING),
                    reraise=True,
                ):
                    with attempt:
                        await self.delete(key)
            except Exception as e:
                logger.warning("Giving up on releasing blob %s: %s", key, str(e))
