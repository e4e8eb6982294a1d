"""Message model: one row per inbound or outbound WhatsApp message.

Rows are insert-only. For inbound rows counterpart_id is the sender and
local_party_id the receiving account; outbound rows keep the same columns
with the roles of sender and receiver swapped, so both directions of a
thread share the (local_party_id, counterpart_id) pair.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from wabridge.db import Base
from wabridge.models.mixins import utcnow
from wabridge.models.types import JSONType


class Message(Base):
    __tablename__ = "messages"

    __table_args__ = (
        Index(
            "ix_messages_conversation",
            "local_party_id",
            "counterpart_id",
            "timestamp",
        ),
        Index("ix_messages_timestamp", "timestamp"),
    )

    id = Column(String(255), primary_key=True)
    counterpart_id = Column(String(64), nullable=False, index=True)
    local_party_id = Column(String(255), nullable=False, index=True)
    is_sent_by_me = Column(Boolean, nullable=False, default=False)
    content = Column(Text, nullable=False, default="")
    message_type = Column(String(32), nullable=False, default="text")
    media_data = Column(JSONType, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_read = Column(Boolean, nullable=False, default=False)
