# FILE: messboard/routes/upload.py
"""
Image upload endpoints
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel

from messboard.deps import get_blob_store
from messboard.exceptions import BlobStoreError, ValidationError
from messboard.services.blob_store import BlobStore, decode_image_data

logger = logging.getLogger(__name__)
router = APIRouter()


class DataUrlUploadRequest(BaseModel):
    """Upload request carrying a data URL or bare base64"""
    imageData: Optional[str] = None


def _check_size(request: Request, data: bytes) -> None:
    max_mb = request.app.state.settings.max_upload_mb
    if len(data) > max_mb * 1024 * 1024:
        raise ValidationError(f"Image larger than {max_mb}MB", {"size": len(data)})


async def _store(blob_store: BlobStore, data: bytes, **kwargs):
    try:
        return await blob_store.store(data, **kwargs)
    except BlobStoreError as e:
        logger.error(f"Error uploading image: {e}")
        raise BlobStoreError("Upload failed") from e


@router.post("")
async def upload_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Multipart image upload"""
    if image is None:
        raise ValidationError("No image data provided")

    data = await image.read()
    if not data:
        raise ValidationError("No image data provided")
    _check_size(request, data)

    logger.info(f"Upload: {image.filename} ({len(data)} bytes)")
    stored = await _store(blob_store, data, filename=image.filename, content_type=image.content_type)
    return stored.model_dump()


@router.post("/data-url")
async def upload_data_url(
    request: Request,
    body: DataUrlUploadRequest,
    blob_store: BlobStore = Depends(get_blob_store)
):
    """JSON upload of a data URL"""
    data, mime = decode_image_data(body.imageData or "")
    _check_size(request, data)

    logger.info(f"Upload (data URL): {mime or 'unknown type'} ({len(data)} bytes)")
    stored = await _store(blob_store, data, content_type=mime)
    return stored.model_dump()
