"""
S3 storage for offloaded media.

Objects are private and keyed `{counterpart_id}/{media_id}.{ext}`, so the
same media always lands on the same key and re-uploads overwrite. Readers
get 24-hour presigned URLs that can be regenerated from the key alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from wabridge.config import Settings, get_settings
from wabridge.infra.logging_config import get_logger

logger = get_logger("object_storage")

DEFAULT_EXTENSION = "bin"
DEFAULT_URL_EXPIRY_SECONDS = 24 * 60 * 60

MIME_EXTENSIONS: dict[str, str] = {
    # Images
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    # Documents
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "text/csv": "csv",
    "application/zip": "zip",
    "application/x-rar-compressed": "rar",
    "application/x-7z-compressed": "7z",
    # Audio
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "audio/aac": "aac",
    # Video
    "video/mp4": "mp4",
    "video/mpeg": "mpeg",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "video/webm": "webm",
    "video/3gpp": "3gp",
}


def extension_for(mime_type: Optional[str]) -> str:
    """File extension for a MIME type; parameters like `; codecs=opus` are ignored."""
    if not mime_type:
        return DEFAULT_EXTENSION
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_EXTENSIONS.get(base, DEFAULT_EXTENSION)


def media_key(counterpart_id: str, media_id: str, mime_type: Optional[str]) -> str:
    return f"{counterpart_id}/{media_id}.{extension_for(mime_type)}"


@dataclass
class StorageResult:
    key: str
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.url is not None


class S3MediaStorage:
    """Thin wrapper over a boto3 S3 client; the client is created lazily."""

    def __init__(
        self,
        bucket: Optional[str],
        client: Any = None,
        url_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.bucket = bucket
        self.url_expiry_seconds = url_expiry_seconds
        self._client = client
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "S3MediaStorage":
        settings = settings or get_settings()
        return cls(
            bucket=settings.aws_bucket_name,
            url_expiry_seconds=settings.media_url_expiry_seconds,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.bucket)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self._region,
                aws_access_key_id=self._access_key_id,
                aws_secret_access_key=self._secret_access_key,
                config=Config(
                    connect_timeout=self._timeout,
                    read_timeout=self._timeout,
                    retries={"max_attempts": 1},
                ),
            )
        return self._client

    def upload(
        self,
        counterpart_id: str,
        media_id: str,
        mime_type: Optional[str],
        content: bytes,
    ) -> StorageResult:
        """Put the object (private) and return a presigned URL for it."""
        key = media_key(counterpart_id, media_id, mime_type)
        if not self.configured:
            return StorageResult(key=key, error="AWS_BUCKET_NAME is not configured")
        logger.info("Uploading to S3: %s (%d bytes, %s)", key, len(content), mime_type)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=mime_type or "application/octet-stream",
                ACL="private",
                Metadata={
                    "whatsapp-media-id": media_id,
                    "sender-id": counterpart_id,
                    "uploaded-at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            return StorageResult(key=key, error=str(e))
        return self.presigned_url(counterpart_id, media_id, mime_type)

    def presigned_url(
        self, counterpart_id: str, media_id: str, mime_type: Optional[str]
    ) -> StorageResult:
        """Sign a GET URL for the deterministic key; no upload involved."""
        key = media_key(counterpart_id, media_id, mime_type)
        if not self.configured:
            return StorageResult(key=key, error="AWS_BUCKET_NAME is not configured")
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.url_expiry_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Presigning %s failed: %s", key, e)
            return StorageResult(key=key, error=str(e))
        return StorageResult(key=key, url=url)

    def exists(self, counterpart_id: str, media_id: str, mime_type: Optional[str]) -> bool:
        if not self.configured:
            return False
        try:
            self.client.head_object(
                Bucket=self.bucket, Key=media_key(counterpart_id, media_id, mime_type)
            )
        except (ClientError, BotoCoreError):
            return False
        return True

    def delete(self, counterpart_id: str, media_id: str, mime_type: Optional[str]) -> bool:
        if not self.configured:
            return False
        key = media_key(counterpart_id, media_id, mime_type)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Error deleting %s from S3: %s", key, e)
            return False
        logger.info("Deleted from S3: %s", key)
        return True
