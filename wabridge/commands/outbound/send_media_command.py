"""
Command to send uploaded files as WhatsApp media messages to one recipient.

Each file is uploaded to the provider, sent as an image, video, audio or
document message, copied to S3 under the recipient's prefix and stored.
One file failing does not stop the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.adapters.whatsapp import (
    CAPTIONED_MEDIA_TYPES,
    WhatsAppCloudAdapter,
    build_media_request,
    media_type_for_mime,
)
from wabridge.config import get_settings
from wabridge.core.credentials import ProviderCredential
from wabridge.core.identifiers import generate_message_id
from wabridge.core.phone import validate_recipient
from wabridge.exceptions import (
    CredentialsNotConfiguredError,
    DuplicateMessageError,
    RecipientValidationError,
)
from wabridge.schemas.messaging import MediaMetadata, MediaSendResult, SendMediaResponse
from wabridge.services.account_service import AccountService
from wabridge.services.account_settings_service import AccountSettingsService
from wabridge.services.message_service import MessageService

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class MediaFile:
    """One file read from the multipart request."""

    filename: str
    content_type: Optional[str]
    content: bytes

    @property
    def mime_type(self) -> str:
        return self.content_type or DEFAULT_MIME_TYPE


def placeholder_content(media_type: str) -> str:
    """Row content for media sent without a caption, e.g. "[Image]"."""
    return f"[{media_type.capitalize()}]"


class SendMediaCommand:
    """
    Command to send one or more files to a single recipient.

    Raises HTTPException 400 for an invalid recipient, no files, or missing
    settings. Per-file provider failures are reported in the results.
    """

    def __init__(
        self,
        db: Session,
        adapter: Optional[BaseMessagingAdapter] = None,
        storage: Optional[S3MediaStorage] = None,
    ) -> None:
        self.db = db
        self.logger = logging.getLogger(__name__)
        settings = get_settings()
        self.adapter = adapter or WhatsAppCloudAdapter(timeout=settings.http_timeout_seconds)
        self.storage = storage or S3MediaStorage.from_settings(settings)
        self.account_service = AccountService(db)
        self.settings_service = AccountSettingsService(db)
        self.message_service = MessageService(db)

    def execute(
        self,
        account_id: str,
        to: str,
        files: Sequence[MediaFile],
        captions: Sequence[Optional[str]] = (),
    ) -> SendMediaResponse:
        if not files:
            raise HTTPException(status_code=400, detail="At least one file is required")
        try:
            recipient = validate_recipient(to)
        except RecipientValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        try:
            credential = self.settings_service.get_credential(account_id)
        except CredentialsNotConfiguredError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ValueError as e:
            self.logger.error("Credentials for %s cannot be loaded: %s", account_id, e)
            raise HTTPException(status_code=400, detail=str(e)) from e

        self.account_service.ensure_accounts([recipient])

        results = []
        for index, media_file in enumerate(files):
            caption = captions[index] if index < len(captions) else None
            results.append(
                self._send_one(account_id, recipient, credential, media_file, caption or None)
            )

        success_count = sum(1 for r in results if r.success)
        timestamp = datetime.now(timezone.utc)
        if success_count:
            self.account_service.touch_last_active(account_id, timestamp)
        return SendMediaResponse(
            success=success_count > 0,
            total_files=len(files),
            success_count=success_count,
            failure_count=len(files) - success_count,
            results=results,
            timestamp=timestamp,
        )

    def _send_one(
        self,
        account_id: str,
        recipient: str,
        credential: ProviderCredential,
        media_file: MediaFile,
        caption: Optional[str],
    ) -> MediaSendResult:
        media_type = media_type_for_mime(media_file.mime_type)
        if media_type not in CAPTIONED_MEDIA_TYPES:
            caption = None
        result = MediaSendResult(filename=media_file.filename, success=False, media_type=media_type)
        if not media_file.content:
            result.error = "File is empty"
            return result

        upload = self.adapter.upload_media(
            credential, media_file.content, media_file.mime_type, media_file.filename
        )
        if upload.error or not upload.media_id:
            self.logger.warning(
                "Media upload of %s failed: %s", media_file.filename, upload.error
            )
            result.error = upload.error or "Media upload failed"
            return result

        request_body = build_media_request(
            recipient,
            media_type,
            upload.media_id,
            caption=caption,
            filename=media_file.filename,
        )
        sent = self.adapter.send(credential, request_body)
        if not sent.success:
            self.logger.warning(
                "Media send of %s to %s failed: %s", media_file.filename, recipient, sent.error
            )
            result.error = sent.error or "Failed to send media message"
            return result

        timestamp = datetime.now(timezone.utc)
        local_media_id = generate_message_id("upload")
        stored = self.storage.upload(
            recipient, local_media_id, media_file.mime_type, media_file.content
        )
        if not stored.success:
            self.logger.warning(
                "Sent %s but could not copy it to S3: %s", media_file.filename, stored.error
            )
        media_data = MediaMetadata(
            type=media_type,
            id=local_media_id,
            mime_type=media_file.mime_type,
            filename=media_file.filename,
            caption=caption,
            media_url=stored.url,
            s3_uploaded=stored.success,
            upload_timestamp=timestamp if stored.success else None,
            upload_error=stored.error,
            whatsapp_media_id=upload.media_id,
        )

        message_id = sent.provider_message_id or generate_message_id("outgoing_media")
        result.success = True
        result.message_id = message_id
        result.s3_uploaded = stored.success
        try:
            self.message_service.create_message(
                id=message_id,
                counterpart_id=recipient,
                local_party_id=account_id,
                is_sent_by_me=True,
                content=caption or placeholder_content(media_type),
                message_type=media_type,
                timestamp=timestamp,
                media_data=media_data.to_storage(),
            )
        except (DuplicateMessageError, SQLAlchemyError) as e:
            self.db.rollback()
            self.logger.error(
                "Sent media %s to %s but failed to store it: %s", message_id, recipient, e
            )
        return result
