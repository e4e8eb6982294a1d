"""
Command to handle WhatsApp Cloud API webhooks.

GET performs the subscription handshake. POST normalizes every message in the
delivery, offloads media to S3, resolves the receiving account, upserts the
counterpart and stores the message. The provider redelivers anything that is
not acknowledged, so a delivery is always acknowledged once processed, even
when individual messages fail.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter
from wabridge.config import get_settings
from wabridge.core.credentials import ProviderCredential
from wabridge.core.receiver import DefaultReceiverResolver, ReceiverResolver
from wabridge.exceptions import DuplicateMessageError
from wabridge.models.account_settings import AccountSettings
from wabridge.schemas.messaging import MediaMetadata, NormalizedInbound
from wabridge.schemas.whatsapp import WebhookPayload
from wabridge.services.account_service import AccountService
from wabridge.services.account_settings_service import AccountSettingsService
from wabridge.services.inbound_normalizer import InboundNormalizer
from wabridge.services.media_offload_service import MediaOffloadService
from wabridge.services.message_service import MessageService


class WebhookOutcome:
    """Counters for one delivery; returned for logging and tests."""

    def __init__(self) -> None:
        self.stored: list[str] = []
        self.duplicates: list[str] = []
        self.failed: list[str] = []
        self.ignored = False

    def __repr__(self) -> str:
        return (
            f"WebhookOutcome(stored={len(self.stored)}, duplicates={len(self.duplicates)}, "
            f"failed={len(self.failed)}, ignored={self.ignored})"
        )


class WhatsAppWebhookCommand:
    """
    Command to handle WhatsApp webhook verification and deliveries.

    With a webhook token in the URL the delivery belongs to the account whose
    settings carry that token; without one, the configured business owner or
    the account owning the receiving phone number is used.
    """

    def __init__(
        self,
        db: Session,
        adapter: Optional[BaseMessagingAdapter] = None,
        storage: Optional[S3MediaStorage] = None,
        resolver: Optional[ReceiverResolver] = None,
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)
        self._adapter = adapter or WhatsAppCloudAdapter(
            timeout=self.settings.http_timeout_seconds
        )
        self._storage = storage or S3MediaStorage.from_settings(self.settings)
        self._resolver = resolver
        self.normalizer = InboundNormalizer()
        self.account_service = AccountService(db)
        self.settings_service = AccountSettingsService(db)
        self.message_service = MessageService(db)
        self.offload_service = MediaOffloadService(self._adapter, self._storage)

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    def verify(
        self,
        mode: Optional[str],
        token: Optional[str],
        challenge: Optional[str],
        webhook_token: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return the challenge to echo, or None to answer 403.

        The expected verify token comes from the webhook token's settings row,
        else WHATSAPP_VERIFY_TOKEN, else any account configured with the
        presented token.
        """
        account_settings: Optional[AccountSettings] = None
        if webhook_token:
            account_settings = self.settings_service.get_by_webhook_token(webhook_token)
            if account_settings is None:
                self.logger.warning("Webhook verification for unknown webhook token")
                return None
            expected = account_settings.verify_token
        elif self.settings.whatsapp_verify_token:
            expected = self.settings.whatsapp_verify_token
        else:
            account_settings = (
                self.settings_service.get_by_verify_token(token) if token else None
            )
            expected = account_settings.verify_token if account_settings else None

        result = self._adapter.verify_webhook(mode, token, challenge, expected)
        if result is None:
            self.logger.warning("Webhook verification failed (mode=%s)", mode)
            return None
        if account_settings is not None:
            self.settings_service.mark_webhook_verified(account_settings)
            self.logger.info("Webhook verified for account %s", account_settings.id)
        return result

    # ------------------------------------------------------------------
    # Deliveries
    # ------------------------------------------------------------------

    def execute(
        self, payload: dict[str, Any], webhook_token: Optional[str] = None
    ) -> WebhookOutcome:
        """
        Process one webhook delivery.

        Never raises for payload or persistence problems; the caller always
        acknowledges with 200.
        """
        outcome = WebhookOutcome()
        owner_settings: Optional[AccountSettings] = None
        if webhook_token:
            owner_settings = self.settings_service.get_by_webhook_token(webhook_token)
            if owner_settings is None:
                self.logger.error("No account found for webhook token; acknowledging")
                outcome.ignored = True
                return outcome

        try:
            envelope = WebhookPayload.model_validate(payload)
        except ValidationError as e:
            self.logger.warning("Malformed webhook payload: %s", e.errors(include_url=False))
            outcome.ignored = True
            return outcome

        items = self.normalizer.normalize(envelope)
        for item in items:
            if owner_settings is not None and not self._addressed_to(owner_settings, item):
                self.logger.warning(
                    "Phone number ID mismatch. Expected %s, got %s",
                    owner_settings.phone_number_id,
                    item.phone_number_id,
                )
                continue
            self._process(item, owner_settings, outcome)

        self.logger.info("WhatsApp webhook processed: %r", outcome)
        return outcome

    @staticmethod
    def _addressed_to(owner_settings: AccountSettings, item: NormalizedInbound) -> bool:
        if not item.phone_number_id:
            return True
        return owner_settings.phone_number_id == item.phone_number_id

    def _owner_settings_for(
        self, item: NormalizedInbound, owner_settings: Optional[AccountSettings]
    ) -> Optional[AccountSettings]:
        if owner_settings is not None:
            return owner_settings
        if self.settings.business_owner_id:
            return self.settings_service.get_settings(self.settings.business_owner_id)
        if item.phone_number_id:
            return self.settings_service.get_by_phone_number_id(item.phone_number_id)
        return None

    def _resolver_for(self, owner_settings: Optional[AccountSettings]) -> ReceiverResolver:
        if self._resolver is not None:
            return self._resolver
        return DefaultReceiverResolver(
            self.account_service,
            business_owner_id=(
                owner_settings.id if owner_settings else self.settings.business_owner_id
            ),
            system_account_id=self.settings.system_account_id,
        )

    def _credential_for(
        self, owner_settings: Optional[AccountSettings]
    ) -> Optional[ProviderCredential]:
        try:
            return self.settings_service.credential_from(owner_settings)
        except ValueError as e:
            self.logger.error("Cannot load credentials for media download: %s", e)
            return None

    def _offload(
        self, media: MediaMetadata, counterpart_id: str, credential: Optional[ProviderCredential]
    ) -> MediaMetadata:
        result = self.offload_service.offload(
            media.id or "", counterpart_id, media.mime_type, credential
        )
        if result.success:
            return media.model_copy(
                update={
                    "media_url": result.url,
                    "s3_uploaded": True,
                    "upload_timestamp": datetime.now(timezone.utc),
                }
            )
        self.logger.warning("Media %s not offloaded: %s", media.id, result.error)
        return media.model_copy(
            update={
                "media_url": None,
                "s3_uploaded": False,
                "upload_error": result.error,
            }
        )

    def _process(
        self,
        item: NormalizedInbound,
        owner_settings: Optional[AccountSettings],
        outcome: WebhookOutcome,
    ) -> None:
        inbound = item.message
        if self.message_service.get_message(inbound.id) is not None:
            self.logger.info("Ignoring redelivered message %s", inbound.id)
            outcome.duplicates.append(inbound.id)
            return

        settings_row = self._owner_settings_for(item, owner_settings)
        media = inbound.media
        if media is not None and media.id:
            credential = self._credential_for(settings_row)
            if credential is not None:
                media = self._offload(media, inbound.counterpart_id, credential)

        try:
            local_party_id = self._resolver_for(settings_row).resolve(inbound.counterpart_id)
            self.account_service.upsert_contact(
                inbound.counterpart_id,
                name=item.profile.name,
                last_active=inbound.timestamp,
                whatsapp_name=item.profile.name,
            )
            self.message_service.create_inbound(
                inbound,
                local_party_id=local_party_id,
                media_data=media.to_storage() if media is not None else None,
            )
        except DuplicateMessageError:
            self.logger.info("Ignoring redelivered message %s", inbound.id)
            outcome.duplicates.append(inbound.id)
            return
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error("Failed to store message %s: %s", inbound.id, e)
            outcome.failed.append(inbound.id)
            return
        outcome.stored.append(inbound.id)
