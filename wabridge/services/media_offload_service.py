"""
Media offload: copy inbound media from the provider's short-lived URLs into
private object storage and hand back a presigned URL.

Failures are reported, never raised; a message whose media could not be
offloaded is still stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.object_storage import S3MediaStorage, media_key
from wabridge.core.credentials import ProviderCredential
from wabridge.infra.logging_config import get_logger

logger = get_logger("media_offload")

_MEDIA_ID = re.compile(r"^\d+$")


@dataclass
class OffloadResult:
    key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.url is not None


class MediaOffloadService:
    def __init__(self, adapter: BaseMessagingAdapter, storage: S3MediaStorage) -> None:
        self._adapter = adapter
        self._storage = storage

    def offload(
        self,
        media_id: str,
        counterpart_id: str,
        mime_type: Optional[str],
        credential: Optional[ProviderCredential],
    ) -> OffloadResult:
        """
        Resolve, download and store one media object.

        The storage key depends only on (counterpart_id, media_id, mime_type),
        so retrying the same media overwrites the earlier object.
        """
        if credential is None or not credential.access_token:
            return OffloadResult(error="No access token configured for media download")
        if not _MEDIA_ID.match(media_id or ""):
            return OffloadResult(error=f"Invalid media ID format: {media_id}")
        key = media_key(counterpart_id, media_id, mime_type)
        if not self._storage.configured:
            return OffloadResult(key=key, error="Media storage is not configured")

        lookup = self._adapter.get_media_url(credential, media_id)
        if lookup.error or not lookup.url:
            logger.error("Failed to get WhatsApp media URL for %s: %s", media_id, lookup.error)
            return OffloadResult(key=key, error=lookup.error or "No media URL")

        download = self._adapter.download_media(credential, lookup.url)
        if download.error or download.content is None:
            logger.error("Failed to download media %s: %s", media_id, download.error)
            return OffloadResult(key=key, error=download.error or "Empty download")

        stored = self._storage.upload(counterpart_id, media_id, mime_type, download.content)
        if not stored.success:
            return OffloadResult(key=stored.key, error=stored.error)
        logger.info("Offloaded media %s to %s", media_id, stored.key)
        return OffloadResult(key=stored.key, url=stored.url)

    def regenerate_access_url(
        self, counterpart_id: str, media_id: str, mime_type: Optional[str]
    ) -> OffloadResult:
        """Fresh presigned URL for media that was already offloaded."""
        signed = self._storage.presigned_url(counterpart_id, media_id, mime_type)
        if not signed.success:
            return OffloadResult(key=signed.key, error=signed.error)
        return OffloadResult(key=signed.key, url=signed.url)

    def media_exists(self, counterpart_id: str, media_id: str, mime_type: Optional[str]) -> bool:
        return self._storage.exists(counterpart_id, media_id, mime_type)

    def delete_media(self, counterpart_id: str, media_id: str, mime_type: Optional[str]) -> bool:
        return self._storage.delete(counterpart_id, media_id, mime_type)
