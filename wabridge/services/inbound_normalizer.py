"""
Inbound normalization: WhatsApp webhook payload → canonical inbound messages.

Pure parsing; no I/O. Media offload and persistence happen in the webhook
command, which consumes the NormalizedInbound items produced here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from wabridge.core.phone import normalize_phone
from wabridge.infra.logging_config import get_logger
from wabridge.schemas.messaging import ContactProfile, InboundMessage, NormalizedInbound
from wabridge.schemas.whatsapp import (
    UnsupportedMessage,
    WebhookContact,
    WebhookPayload,
    parse_contact,
    parse_message,
)

logger = get_logger("inbound_normalizer")


def parse_timestamp(raw: Optional[str]) -> datetime:
    """Provider epoch seconds → aware UTC datetime; missing or bad values mean now."""
    if raw:
        try:
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning("Invalid message timestamp %r; using current time", raw)
    return datetime.now(timezone.utc)


def _profile_for(
    sender: str, counterpart_id: str, contacts: list[WebhookContact]
) -> ContactProfile:
    for contact in contacts:
        if contact.wa_id and contact.wa_id in (sender, counterpart_id):
            name = contact.profile.name if contact.profile else None
            return ContactProfile(wa_id=counterpart_id, name=name or sender)
    return ContactProfile(wa_id=counterpart_id, name=sender)


class InboundNormalizer:
    """Turns webhook deliveries into NormalizedInbound items."""

    def normalize(self, payload: dict[str, Any] | WebhookPayload) -> list[NormalizedInbound]:
        """
        Parse every message in every entry/change of the payload.

        Raises pydantic.ValidationError only when the envelope itself is
        malformed. Malformed individual messages are logged and skipped.
        """
        envelope = (
            payload
            if isinstance(payload, WebhookPayload)
            else WebhookPayload.model_validate(payload)
        )
        results: list[NormalizedInbound] = []
        for entry in envelope.entry:
            for change in entry.changes:
                value = change.value
                phone_number_id = value.metadata.phone_number_id if value.metadata else None
                contacts = self._valid_contacts(value.contacts)
                for raw in value.messages:
                    item = self._normalize_one(raw, contacts, phone_number_id)
                    if item is not None:
                        results.append(item)
        return results

    @staticmethod
    def _valid_contacts(raw_contacts: list[Any]) -> list[WebhookContact]:
        contacts: list[WebhookContact] = []
        for raw in raw_contacts:
            try:
                contacts.append(parse_contact(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed contact: %s", e.errors(include_url=False))
        return contacts

    def _normalize_one(
        self,
        raw: Any,
        contacts: list[WebhookContact],
        phone_number_id: Optional[str],
    ) -> Optional[NormalizedInbound]:
        if not isinstance(raw, dict):
            logger.warning("Skipping message entry that is not an object: %r", raw)
            return None
        try:
            message = parse_message(raw)
        except ValidationError as e:
            logger.warning(
                "Skipping malformed %s message %s: %s",
                raw.get("type"),
                raw.get("id"),
                e.errors(include_url=False),
            )
            return None

        counterpart_id = normalize_phone(message.from_)
        if not counterpart_id:
            logger.warning("Skipping message %s with no usable sender", message.id)
            return None

        if isinstance(message, UnsupportedMessage):
            logger.warning("Unsupported message type: %s (%s)", message.type, message.id)

        content, media = message.render()
        inbound = InboundMessage(
            id=message.id,
            counterpart_id=counterpart_id,
            message_type=message.message_type,
            content=content,
            media=media,
            timestamp=parse_timestamp(message.timestamp),
        )
        return NormalizedInbound(
            message=inbound,
            profile=_profile_for(message.from_, counterpart_id, contacts),
            phone_number_id=phone_number_id,
        )
