"""
Image upload handling: MIME filtering, unique naming and cleanup.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import UploadFile

from places_api.errors import ValidationError
from places_api.storage import StorageClient

logger = logging.getLogger(__name__)

MIME_TYPE_MAP = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
}


def store_image(
    upload: UploadFile,
    storage: StorageClient,
    *,
    prefix: str,
    max_bytes: int,
) -> str:
    """
    Validate and persist an uploaded image, returning its storage path.

    Rejected files never reach storage.
    """
    ext = MIME_TYPE_MAP.get(upload.content_type or "")
    if not ext:
        raise ValidationError("Invalid mime type.")

    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"Image exceeds the {max_bytes} byte limit.")

    path = f"{prefix.strip('/')}/{uuid4().hex}.{ext}"
    storage.save_bytes(path, data, upload.content_type)
    return path


def discard_image(storage: StorageClient, path: str) -> None:
    """Best-effort delete; failures are logged and never raised."""
    try:
        storage.delete(path)
    except Exception:
        logger.exception("Failed to delete image %s", path)
