# FILE: messboard/services/blob_store.py
"""
Image blob store
"""
import asyncio
import base64
import binascii
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel

from messboard.exceptions import BlobStoreError, ValidationError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)
_BLOB_ID_RE = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,8})?$")


class StoredBlob(BaseModel):
    """Result of a store call"""
    url: str
    id: str


def decode_image_data(image_data: str) -> Tuple[bytes, Optional[str]]:
    """
    Decode a data URL or bare base64 string.

    Returns (bytes, mime type or None).
    """
    if not image_data or not image_data.strip():
        raise ValidationError("No image data provided")

    mime = None
    payload = image_data.strip()
    match = _DATA_URL_RE.match(payload)
    if match:
        mime = match.group("mime")
        payload = match.group("data")
        if not match.group("b64"):
            return payload.encode("utf-8"), mime

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Image data is not valid base64") from e

    if not data:
        raise ValidationError("No image data provided")
    return data, mime


class BlobStore:
    """Base blob store"""

    async def store(self, data: bytes, filename: Optional[str] = None,
                    content_type: Optional[str] = None) -> StoredBlob:
        raise NotImplementedError

    async def delete(self, blob_id: str) -> None:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Filesystem blob store; files are served under url_prefix"""

    def __init__(self, media_dir: str, url_prefix: str = "/media"):
        self.media_dir = Path(media_dir)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _extension(self, filename: Optional[str], content_type: Optional[str]) -> str:
        if filename:
            suffix = Path(filename).suffix.lower()
            if re.fullmatch(r"\.[a-z0-9]{1,8}", suffix):
                return suffix
        if content_type:
            guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
            if guessed:
                return guessed
        return ""

    def _path_for(self, blob_id: str) -> Path:
        if not _BLOB_ID_RE.match(blob_id):
            raise BlobStoreError("Invalid blob id", {"blob_id": blob_id})
        return self.media_dir / blob_id

    async def store(self, data: bytes, filename: Optional[str] = None,
                    content_type: Optional[str] = None) -> StoredBlob:
        if not data:
            raise ValidationError("No image data provided")

        blob_id = f"{uuid4().hex}{self._extension(filename, content_type)}"
        path = self.media_dir / blob_id
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            logger.error(f"Failed to write blob {blob_id}: {e}")
            raise BlobStoreError("Failed to store image") from e

        logger.info(f"Stored blob {blob_id} ({len(data)} bytes)")
        return StoredBlob(url=f"{self.url_prefix}/{blob_id}", id=blob_id)

    async def delete(self, blob_id: str) -> None:
        path = self._path_for(blob_id)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            logger.error(f"Failed to delete blob {blob_id}: {e}")
            raise BlobStoreError("Failed to delete image", {"blob_id": blob_id}) from e
        logger.debug(f"Deleted blob {blob_id}")
