"""
Rebuild logical broadcasts from per-recipient message rows.

A broadcast to N members stores N rows tagged with the group id in
media_data. Rows that share a broadcast id (or, for rows written without
one, the exact same timestamp) form one logical send, shown through the row
with the smallest id.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from wabridge.infra.logging_config import get_logger
from wabridge.models.message import Message
from wabridge.schemas.messaging import BroadcastView
from wabridge.services.message_service import MessageService

logger = get_logger("broadcast_reconstructor")


def parse_media_data(raw: Any) -> Optional[dict[str, Any]]:
    """media_data as a dict; JSON strings are decoded, anything else is None."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def _bucket_key(message: Message, metadata: dict[str, Any]) -> tuple:
    broadcast_id = metadata.get("broadcast_id")
    if broadcast_id:
        return ("broadcast", str(broadcast_id))
    return ("timestamp", message.timestamp)


def reconstruct_broadcasts(
    messages: Iterable[Message], group_id: str
) -> List[BroadcastView]:
    """
    Group the rows tagged with group_id into logical broadcasts.

    Rows with missing or unreadable media_data, or a different group tag, are
    left out. Output is ordered by timestamp, oldest first.
    """
    group_id = str(group_id)
    buckets: dict[tuple, list[tuple[Message, dict[str, Any]]]] = {}
    for message in messages:
        metadata = parse_media_data(message.media_data)
        if metadata is None:
            continue
        if str(metadata.get("broadcast_group_id") or "") != group_id:
            continue
        buckets.setdefault(_bucket_key(message, metadata), []).append(
            (message, metadata)
        )

    views: list[BroadcastView] = []
    for rows in buckets.values():
        representative, metadata = min(rows, key=lambda row: row[0].id)
        views.append(
            BroadcastView(
                id=representative.id,
                counterpart_id=representative.counterpart_id,
                local_party_id=representative.local_party_id,
                is_sent_by_me=True,
                content=representative.content,
                message_type=representative.message_type,
                media_data=metadata,
                timestamp=representative.timestamp,
                is_read=True,
                group_id=group_id,
                broadcast_id=metadata.get("broadcast_id"),
                recipient_count=len(rows),
            )
        )
    views.sort(key=lambda view: (view.timestamp, view.id))
    return views


class BroadcastReconstructor:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.message_service = MessageService(db)

    def reconstruct(self, account_id: str, group_id: str) -> List[BroadcastView]:
        messages = self.message_service.get_outbound_messages(account_id)
        views = reconstruct_broadcasts(messages, group_id)
        logger.debug(
            "Reconstructed %d broadcasts for group %s from %d rows",
            len(views),
            group_id,
            len(messages),
        )
        return views
