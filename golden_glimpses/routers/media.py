# golden_glimpses/routers/media.py
import logging
import mimetypes

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ..config import Settings
from ..deps import get_blobs, get_settings_dep
from ..models import User
from ..security import require_user
from ..utils.storage import BlobStore, UploadResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/media", tags=["media"])

ALLOWED_FAMILIES = ("image", "video", "audio")

def read_upload(file: UploadFile, settings: Settings) -> tuple[bytes, str]:
    """
    Read an uploaded file after checking its type and size.
    Returns (data, content_type).
    """
    content_type = (file.content_type or "").lower()
    if not content_type or content_type == "application/octet-stream":
        content_type = mimetypes.guess_type(file.filename or "")[0] or ""
    if content_type.split("/", 1)[0] not in ALLOWED_FAMILIES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only image, video and audio files are allowed",
        )

    max_bytes = settings.max_upload_mb * 1024 * 1024
    # UploadFile.file is a SpooledTemporaryFile -> supports .read()
    data = file.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_mb} MB limit",
        )
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    return data, content_type

def upload_payload(result: UploadResult) -> dict:
    return {
        "success": True,
        "message": "File uploaded successfully",
        "url": result.url,
        "publicId": result.public_id,
        "format": result.format,
        "resourceType": result.resource_type,
        "bytes": result.bytes,
    }

@router.post("/upload")
def upload_media(
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    blobs: BlobStore = Depends(get_blobs),
    settings: Settings = Depends(get_settings_dep),
):
    """Store one file and return its url; attach it to a capsule separately."""
    data, content_type = read_upload(file, settings)
    result = blobs.upload(user.id, data, content_type, file.filename)
    logger.info("User %s uploaded %s (%d bytes)", user.id, result.public_id, result.bytes)
    return upload_payload(result)

@router.delete("/{public_id:path}")
def delete_media(
    public_id: str,
    user: User = Depends(require_user),
    blobs: BlobStore = Depends(get_blobs),
):
    # another user's file reads as missing
    if not blobs.delete(user.id, public_id):
        raise HTTPException(status_code=404, detail="File not found or already deleted")
    return {"success": True, "message": "File deleted successfully"}
