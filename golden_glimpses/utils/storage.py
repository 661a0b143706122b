# golden_glimpses/utils/storage.py
"""
Blob storage for uploaded media.

The capsule code only ever keeps the url an upload returns. S3-compatible
object storage is used when a bucket and credentials are configured; otherwise
files land on local disk and are served under /uploads.
"""
from __future__ import annotations
import logging
import mimetypes
import re, secrets, time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import Settings

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/uploads"

_SAFE = re.compile(r"[^A-Za-z0-9._-]+")

def _sanitize(name: str) -> str:
    name = name.strip().replace(" ", "_")
    return _SAFE.sub("-", name)

def _unique_name(stem: str, ext: str) -> str:
    ts = int(time.time())
    rand = secrets.token_hex(4)
    return f"{stem}-{ts}-{rand}{ext}"

def _split_name(filename: Optional[str], content_type: str) -> tuple[str, str]:
    orig = Path(filename or "upload").name
    stem, dot, ext = orig.rpartition(".")
    if not dot:
        stem, ext = orig, (mimetypes.guess_extension(content_type) or "").lstrip(".")
    stem = _sanitize(stem or "upload")
    return stem, (f".{_sanitize(ext)}" if ext else "")

def _is_bare(name: str) -> bool:
    """A single path segment that cannot escape its directory."""
    return bool(name) and _sanitize(name) == name and not name.startswith(".")

def _owner_segment(owner_id: str) -> str:
    if not _is_bare(owner_id):
        raise ValueError(f"Unusable owner id for storage: {owner_id!r}")
    return owner_id

def resource_type_for(content_type: str) -> str:
    family = (content_type or "").split("/", 1)[0]
    return family if family in ("image", "video", "audio") else "raw"


@dataclass
class UploadResult:
    url: str
    public_id: str
    format: str
    resource_type: str
    bytes: int


class BlobStore(ABC):
    """
    Objects are stored under the uploader's id, and only that user may
    delete them.
    """

    @abstractmethod
    def upload(
        self, owner_id: str, data: bytes, content_type: str, filename: Optional[str] = None
    ) -> UploadResult: ...

    @abstractmethod
    def delete(self, owner_id: str, public_id: str) -> bool:
        """Remove one of the owner's objects; False when it does not exist or is not theirs."""


class LocalBlobStore(BlobStore):
    def __init__(self, root: Path | str, url_prefix: str = LOCAL_URL_PREFIX):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _path_for(self, owner_id: str, public_id: str) -> Optional[Path]:
        # public ids are "<owner>/<file>"; anything else could escape the root
        owner, sep, name = (public_id or "").partition("/")
        if not sep or owner != owner_id or not _is_bare(owner) or not _is_bare(name):
            return None
        return self.root / owner / name

    def upload(
        self, owner_id: str, data: bytes, content_type: str, filename: Optional[str] = None
    ) -> UploadResult:
        owner = _owner_segment(owner_id)
        stem, ext = _split_name(filename, content_type)
        fname = _unique_name(stem, ext)
        folder = self.root / owner
        folder.mkdir(exist_ok=True)
        (folder / fname).write_bytes(data)
        logger.info("Stored %d bytes locally as %s/%s", len(data), owner, fname)
        return UploadResult(
            url=f"{self.url_prefix}/{owner}/{fname}",
            public_id=f"{owner}/{fname}",
            format=ext.lstrip("."),
            resource_type=resource_type_for(content_type),
            bytes=len(data),
        )

    def delete(self, owner_id: str, public_id: str) -> bool:
        path = self._path_for(owner_id, public_id)
        if path is None or not path.is_file():
            return False
        path.unlink()
        return True


class S3BlobStore(BlobStore):
    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.s3_bucket
        self.prefix = settings.media_prefix
        public = settings.s3_public_base_url
        if not public and settings.s3_endpoint:
            public = f"{settings.s3_endpoint.rstrip('/')}/{self.bucket}"
        self.public_base = (public or f"https://{self.bucket}.s3.amazonaws.com").rstrip("/")
        self.client = client or boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            region_name=settings.s3_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                retries={"max_attempts": 4, "mode": "standard"},
            ),
        )

    def _owner_prefix(self, owner_id: str) -> str:
        return f"{self.prefix}{_owner_segment(owner_id)}/"

    def upload(
        self, owner_id: str, data: bytes, content_type: str, filename: Optional[str] = None
    ) -> UploadResult:
        stem, ext = _split_name(filename, content_type)
        key = f"{self._owner_prefix(owner_id)}{_unique_name(stem, ext)}"
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, key)
        return UploadResult(
            url=f"{self.public_base}/{key}",
            public_id=key,
            format=ext.lstrip("."),
            resource_type=resource_type_for(content_type),
            bytes=len(data),
        )

    def delete(self, owner_id: str, public_id: str) -> bool:
        prefix = self._owner_prefix(owner_id)
        if not public_id.startswith(prefix) or not _is_bare(public_id[len(prefix):]):
            return False
        try:
            self.client.head_object(Bucket=self.bucket, Key=public_id)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        self.client.delete_object(Bucket=self.bucket, Key=public_id)
        return True


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.s3_configured:
        return S3BlobStore(settings)
    logger.warning("Object storage not configured; saving uploads under %s", settings.uploads_dir)
    return LocalBlobStore(settings.uploads_dir)
