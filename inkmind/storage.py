# storage.py
"""
Blob storage for design images.

Designs only hold references (public URLs) to image bytes kept in Vercel
Blob. Uploads go through `put`; deletes go through `release`, which only
touches blobs this store owns, so externally hosted reference images are
never deleted.
"""

import abc
import asyncio
import base64
import binascii
import logging
import os
import re
import uuid
from typing import Optional, Tuple
from urllib.parse import urlparse

import vercel_blob

from errors import StorageError, ValidationError
from settings import settings

logger = logging.getLogger(__name__)

VERCEL_BLOB_HOST_SUFFIX = ".blob.vercel-storage.com"

DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def is_data_url(ref: Optional[str]) -> bool:
    return bool(ref) and ref.startswith("data:")


def parse_data_url(data_url: str) -> Tuple[bytes, str]:
    """Splits a base64 data URL (or bare base64) into raw bytes and a mime type."""
    match = DATA_URL_RE.match(data_url)
    mime_type = match.group(1) if match else "image/png"
    payload = match.group(2) if match else data_url
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64.")


def blob_path(owner_id, mime_type: str = "image/png", folder: str = "designs") -> str:
    """Unique pathname per upload so nothing is ever overwritten."""
    extension = EXTENSIONS.get(mime_type, "png")
    return f"{folder}/{owner_id}/{uuid.uuid4()}.{extension}"


class BlobStorage(abc.ABC):

    @abc.abstractmethod
    def owns(self, ref: Optional[str]) -> bool:
        """True when `ref` points into this store."""

    @abc.abstractmethod
    async def put(self, path: str, data: bytes) -> str:
        """Uploads `data` and returns its public URL."""

    @abc.abstractmethod
    async def release(self, ref: str) -> None:
        """Deletes the blob behind `ref`. Raises `StorageError` on failure."""

    async def put_data_url(self, data_url: str, owner_id, folder: str = "designs") -> str:
        data, mime_type = parse_data_url(data_url)
        return await self.put(blob_path(owner_id, mime_type, folder), data)


class VercelBlobStorage(BlobStorage):
    """
    Vercel Blob backend.

    The `vercel_blob` SDK reads `BLOB_READ_WRITE_TOKEN` from the process
    environment and is synchronous, so calls run in a worker thread.
    """

    def __init__(self, token: Optional[str] = None):
        token = token or settings.BLOB_READ_WRITE_TOKEN
        if token:
            os.environ.setdefault("BLOB_READ_WRITE_TOKEN", token)
        else:
            logger.warning("BLOB_READ_WRITE_TOKEN is not set. Blob uploads and deletes will fail.")

    def owns(self, ref: Optional[str]) -> bool:
        if not ref or is_data_url(ref):
            return False
        host = urlparse(ref).hostname or ""
        return host.endswith(VERCEL_BLOB_HOST_SUFFIX)

    async def put(self, path: str, data: bytes) -> str:
        try:
            result = await asyncio.to_thread(vercel_blob.put, path, data, {"addRandomSuffix": "false"})
        except Exception as e:
            logger.exception(f"Blob upload failed for {path}")
            raise StorageError(f"Could not store image: {e}")
        return result["url"]

    async def release(self, ref: str) -> None:
        try:
            await asyncio.to_thread(vercel_blob.delete, ref)
        except Exception as e:
            raise StorageError(f"Could not delete blob {ref}: {e}")
        logger.info(f"Released blob {ref}")


_storage: Optional[BlobStorage] = None


def get_storage() -> BlobStorage:
    """FastAPI dependency returning the process-wide blob store."""
    global _storage
    if _storage is None:
        _storage = VercelBlobStorage()
    return _storage
