"""
Outbound dispatch: one provider send for one recipient, and the stored row
that records it.

Sending and persisting are separate steps. Broadcast workers only call
`send`; the calling thread persists, so a session is never shared across
threads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.whatsapp import build_template_request, build_text_request
from wabridge.core import templates
from wabridge.core.credentials import ProviderCredential
from wabridge.core.identifiers import generate_message_id
from wabridge.core.phone import validate_recipient
from wabridge.exceptions import DuplicateMessageError, RecipientValidationError
from wabridge.infra.logging_config import get_logger
from wabridge.models.message import Message
from wabridge.schemas.messaging import (
    DispatchResult,
    MessageType,
    TemplatePayload,
    TextPayload,
)
from wabridge.services.message_service import MessageService

logger = get_logger("outbound_dispatcher")

Payload = Union[TextPayload, TemplatePayload]


def message_type_for(payload: Payload) -> MessageType:
    if isinstance(payload, TemplatePayload):
        return MessageType.TEMPLATE
    return MessageType.TEXT


def content_for(payload: Payload) -> str:
    """Text stored as the row's content."""
    if isinstance(payload, TemplatePayload):
        return templates.display_content(payload)
    return payload.body


class OutboundDispatcher:
    """Sends text or template messages through a messaging adapter."""

    def __init__(self, adapter: BaseMessagingAdapter, id_prefix: str = "outgoing") -> None:
        self._adapter = adapter
        self._id_prefix = id_prefix

    def build_request(
        self,
        recipient: str,
        payload: Payload,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        """
        Provider request body for an already validated recipient.

        `components` lets a broadcast build template parameters once and reuse
        them for every member.
        """
        if isinstance(payload, TemplatePayload):
            return build_template_request(
                recipient, templates.build_template_object(payload, components)
            )
        return build_text_request(recipient, payload.body)

    def send(
        self,
        recipient: str,
        payload: Payload,
        credential: ProviderCredential,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> DispatchResult:
        """
        Validate the recipient, then make one provider call.

        Never raises for provider or validation problems: the reason comes back
        on a failed DispatchResult. An invalid recipient causes no network call.
        """
        try:
            to = validate_recipient(recipient)
        except RecipientValidationError as e:
            return DispatchResult(recipient=recipient, success=False, error=str(e))

        try:
            request_body = self.build_request(to, payload, components)
        except ValueError as e:
            return DispatchResult(recipient=to, success=False, error=str(e))

        result = self._adapter.send(credential, request_body)
        if not result.success:
            return DispatchResult(
                recipient=to,
                success=False,
                error=result.error or "Failed to send message",
                status_code=result.status_code,
            )
        return DispatchResult(
            recipient=to,
            success=True,
            provider_message_id=result.provider_message_id,
            message_id=result.provider_message_id or generate_message_id(self._id_prefix),
            status_code=result.status_code,
        )

    def build_message(
        self,
        result: DispatchResult,
        payload: Payload,
        local_party_id: str,
        timestamp: datetime,
        media_data: Optional[dict[str, Any]] = None,
        content: Optional[str] = None,
    ) -> Message:
        """Unsaved row for a successful send."""
        if not result.success or not result.message_id:
            raise ValueError("Only successful sends are stored")
        return Message(
            id=result.message_id,
            counterpart_id=result.recipient,
            local_party_id=local_party_id,
            is_sent_by_me=True,
            content=content if content is not None else content_for(payload),
            message_type=message_type_for(payload).value,
            media_data=media_data,
            timestamp=timestamp,
            is_read=True,
        )

    def persist(
        self,
        db: Session,
        result: DispatchResult,
        payload: Payload,
        local_party_id: str,
        timestamp: datetime,
        media_data: Optional[dict[str, Any]] = None,
        content: Optional[str] = None,
    ) -> Optional[Message]:
        """
        Store the row for a successful send.

        A storage failure is logged and None returned; the send itself still
        counts as delivered.
        """
        message = self.build_message(
            result, payload, local_party_id, timestamp, media_data, content
        )
        try:
            return MessageService(db).save(message)
        except (DuplicateMessageError, SQLAlchemyError) as e:
            db.rollback()
            logger.error(
                "Sent message %s to %s but failed to store it: %s",
                result.message_id,
                result.recipient,
                e,
            )
            return None
