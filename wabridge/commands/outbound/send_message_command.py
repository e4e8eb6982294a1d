"""
Command to send one WhatsApp message (text or template) to one recipient.

Validates the recipient, loads the caller's credentials, sends through the
Cloud API and stores the outbound row on success.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter
from wabridge.config import get_settings
from wabridge.core import templates
from wabridge.core.phone import validate_recipient
from wabridge.exceptions import CredentialsNotConfiguredError, RecipientValidationError
from wabridge.schemas.messaging import (
    SendMessageRequest,
    SendMessageResponse,
    TemplatePayload,
)
from wabridge.services.account_service import AccountService
from wabridge.services.account_settings_service import AccountSettingsService
from wabridge.services.outbound_dispatcher import OutboundDispatcher


class SendMessageCommand:
    """
    Command to send a single outbound message.

    Raises HTTPException: 400 for validation or missing settings, 502 when
    the provider rejects the send.
    """

    def __init__(
        self, db: Session, adapter: Optional[BaseMessagingAdapter] = None
    ) -> None:
        self.db = db
        self.logger = logging.getLogger(__name__)
        settings = get_settings()
        self.dispatcher = OutboundDispatcher(
            adapter or WhatsAppCloudAdapter(timeout=settings.http_timeout_seconds)
        )
        self.account_service = AccountService(db)
        self.settings_service = AccountSettingsService(db)

    def execute(self, account_id: str, body: SendMessageRequest) -> SendMessageResponse:
        if body.is_empty:
            raise HTTPException(
                status_code=400, detail="Either message or template_name is required"
            )
        try:
            recipient = validate_recipient(body.to)
            payload = body.to_payload()
        except (RecipientValidationError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        try:
            credential = self.settings_service.get_credential(account_id)
        except CredentialsNotConfiguredError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ValueError as e:
            self.logger.error("Credentials for %s cannot be loaded: %s", account_id, e)
            raise HTTPException(status_code=400, detail=str(e)) from e

        media_data = None
        if isinstance(payload, TemplatePayload):
            try:
                templates.build_components(payload.variables)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
            media_data = templates.build_template_metadata(payload).to_storage()

        self.account_service.ensure_accounts([recipient])
        timestamp = datetime.now(timezone.utc)
        result = self.dispatcher.send(recipient, payload, credential)
        if not result.success:
            self.logger.warning("Send to %s failed: %s", recipient, result.error)
            raise HTTPException(
                status_code=502,
                detail=result.error or "WhatsApp API failed to send message",
            )

        stored = self.dispatcher.persist(
            self.db,
            result,
            payload,
            local_party_id=account_id,
            timestamp=timestamp,
            media_data=media_data,
        )
        self.account_service.touch_last_active(account_id, timestamp)
        return SendMessageResponse(
            success=True,
            message_id=result.message_id,
            provider_message_id=result.provider_message_id,
            timestamp=timestamp,
            stored=stored is not None,
        )
