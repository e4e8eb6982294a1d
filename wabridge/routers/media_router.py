"""Media API: fresh presigned URLs for media already offloaded to S3."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter
from wabridge.config import get_settings
from wabridge.db import get_db
from wabridge.routers.utils.dependencies import get_current_account_id, get_media_storage
from wabridge.services.media_offload_service import MediaOffloadService
from wabridge.services.message_service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["media"])


class RefreshUrlRequest(BaseModel):
    message_id: str


class RefreshUrlResponse(BaseModel):
    message_id: str
    media_url: str
    expires_in: int


def get_media_offload_service(
    storage: S3MediaStorage = Depends(get_media_storage),
) -> MediaOffloadService:
    return MediaOffloadService(
        WhatsAppCloudAdapter(timeout=get_settings().http_timeout_seconds), storage
    )


@router.post("/refresh-url", response_model=RefreshUrlResponse)
def refresh_media_url(
    body: RefreshUrlRequest,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
    offload_service: MediaOffloadService = Depends(get_media_offload_service),
) -> RefreshUrlResponse:
    """
    Re-sign the S3 URL of a message's media. The stored row is not changed.

    Media is keyed by the counterpart, whichever direction the message went.
    """
    message = MessageService(db).get_owned_message(body.message_id, account_id)
    media = message.media_data if isinstance(message.media_data, dict) else None
    if not media or not media.get("id"):
        raise HTTPException(status_code=400, detail="Message has no media")

    result = offload_service.regenerate_access_url(
        message.counterpart_id, media["id"], media.get("mime_type")
    )
    if not result.success:
        logger.error("Could not refresh media URL for %s: %s", message.id, result.error)
        raise HTTPException(status_code=502, detail="Failed to generate media URL")
    return RefreshUrlResponse(
        message_id=message.id,
        media_url=result.url,
        expires_in=get_settings().media_url_expiry_seconds,
    )
