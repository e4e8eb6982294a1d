"""
Command to broadcast one message to every member of a group.

Each member gets an individual send. One member failing never fails the
broadcast; the result counts successes and failures and lists the reasons.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter
from wabridge.config import get_settings
from wabridge.core import templates
from wabridge.core.credentials import ProviderCredential
from wabridge.exceptions import (
    CredentialsNotConfiguredError,
    EmptyGroupError,
    GroupNotFoundError,
)
from wabridge.schemas.messaging import (
    BroadcastError,
    BroadcastRequest,
    BroadcastResult,
    DispatchResult,
    MediaMetadata,
    TemplatePayload,
)
from wabridge.services.account_service import AccountService
from wabridge.services.account_settings_service import AccountSettingsService
from wabridge.services.group_service import GroupService
from wabridge.services.outbound_dispatcher import OutboundDispatcher, Payload

CANCELLED_REASON = "Broadcast cancelled"


class BroadcastCommand:
    """
    Command to send a text or template message to all members of a group.

    All rows of one broadcast share one timestamp and one broadcast id, and
    carry the group id in media_data; that is how the broadcast is found
    again later. Provider calls run on a bounded thread pool; rows are
    written on the calling thread as results arrive.
    """

    def __init__(
        self,
        db: Session,
        adapter: Optional[BaseMessagingAdapter] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.db = db
        self.logger = logging.getLogger(__name__)
        settings = get_settings()
        self.max_workers = max_workers or settings.broadcast_max_workers
        self.dispatcher = OutboundDispatcher(
            adapter or WhatsAppCloudAdapter(timeout=settings.http_timeout_seconds),
            id_prefix="broadcast",
        )
        self.account_service = AccountService(db)
        self.settings_service = AccountSettingsService(db)
        self.group_service = GroupService(db)

    def execute(
        self,
        account_id: str,
        group_id: str,
        body: BroadcastRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> BroadcastResult:
        """
        Broadcast to the group.

        Raises HTTPException: 400 without message or template, for an empty
        group, bad template variables or missing settings; 404 when the caller
        does not own the group. All checks happen before any send.
        """
        if body.is_empty:
            raise HTTPException(
                status_code=400, detail="Either message or template_name is required"
            )
        try:
            group = self.group_service.get_owned(group_id, account_id)
        except GroupNotFoundError as e:
            raise HTTPException(status_code=404, detail="Group not found") from e

        try:
            members = self.group_service.require_members(group)
        except EmptyGroupError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        try:
            credential = self.settings_service.get_credential(account_id)
        except (CredentialsNotConfiguredError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        try:
            payload = body.to_payload()
            components, content, metadata = self._prepare(payload)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        timestamp = datetime.now(timezone.utc)
        broadcast_id = uuid.uuid4().hex
        media_data = metadata.model_copy(
            update={"broadcast_group_id": str(group.id), "broadcast_id": broadcast_id}
        ).to_storage()

        self.logger.info(
            "Broadcast %s to group %s: %d members", broadcast_id, group.id, len(members)
        )
        outcomes = self._fan_out(
            members,
            payload,
            credential,
            components,
            cancel_event,
            on_success=lambda result: self.dispatcher.persist(
                self.db,
                result,
                payload,
                local_party_id=account_id,
                timestamp=timestamp,
                media_data=dict(media_data),
                content=content,
            ),
        )

        errors = [
            BroadcastError(
                recipient=outcome.recipient,
                error_message=outcome.error or "Failed to send message",
            )
            for outcome in outcomes
            if not outcome.success
        ]
        success_count = len(outcomes) - len(errors)
        self.account_service.touch_last_active(account_id, timestamp)
        self.logger.info(
            "Broadcast %s done: %d sent, %d failed",
            broadcast_id,
            success_count,
            len(errors),
        )
        return BroadcastResult(
            broadcast_id=broadcast_id,
            group_id=str(group.id),
            timestamp=timestamp,
            total=len(members),
            success_count=success_count,
            failed_count=len(errors),
            errors=errors,
        )

    def _prepare(
        self, payload: Payload
    ) -> tuple[Optional[list[dict[str, Any]]], str, MediaMetadata]:
        """Components, display content and metadata, computed once per broadcast."""
        if isinstance(payload, TemplatePayload):
            return (
                templates.build_components(payload.variables),
                templates.display_content(payload),
                templates.build_template_metadata(payload),
            )
        return None, payload.body, MediaMetadata()

    def _send_one(
        self,
        recipient: str,
        payload: Payload,
        credential: ProviderCredential,
        components: Optional[list[dict[str, Any]]],
        cancel_event: Optional[threading.Event],
    ) -> DispatchResult:
        if cancel_event is not None and cancel_event.is_set():
            return DispatchResult(recipient=recipient, success=False, error=CANCELLED_REASON)
        return self.dispatcher.send(recipient, payload, credential, components)

    def _fan_out(
        self,
        members: list[str],
        payload: Payload,
        credential: ProviderCredential,
        components: Optional[list[dict[str, Any]]],
        cancel_event: Optional[threading.Event],
        on_success,
    ) -> list[DispatchResult]:
        """One outcome per member, in member order."""
        outcomes: dict[int, DispatchResult] = {}
        workers = max(1, min(self.max_workers, len(members)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(
                    self._send_one, member, payload, credential, components, cancel_event
                ): index
                for index, member in enumerate(members)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    self.logger.exception("Send to %s crashed: %s", members[index], e)
                    result = DispatchResult(
                        recipient=members[index], success=False, error=str(e)
                    )
                outcomes[index] = result
                if result.success:
                    on_success(result)
        return [outcomes[index] for index in range(len(members))]
