"""
Service for persisting and reading messages.

Messages are immutable; only insert. A conversation is the set of rows that
share (local_party_id, counterpart_id), whichever direction they went.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError

from wabridge.exceptions import DuplicateMessageError, MessageNotFoundError
from wabridge.models.account import Account
from wabridge.models.message import Message
from wabridge.schemas.messaging import InboundMessage


def conversation_key(message: Message) -> Tuple[str, str]:
    """Thread identity of a stored row: (local party, counterpart)."""
    return message.local_party_id, message.counterpart_id


class MessageService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_message(
        self,
        *,
        id: str,
        counterpart_id: str,
        local_party_id: str,
        is_sent_by_me: bool,
        content: str,
        message_type: str,
        timestamp: datetime,
        media_data: Optional[dict[str, Any]] = None,
        is_read: Optional[bool] = None,
    ) -> Message:
        """
        Insert one row. Outbound rows are always created read.

        Raises DuplicateMessageError when the id already exists.
        """
        message = Message(
            id=id,
            counterpart_id=counterpart_id,
            local_party_id=local_party_id,
            is_sent_by_me=is_sent_by_me,
            content=content,
            message_type=message_type,
            media_data=media_data,
            timestamp=timestamp,
            is_read=True if is_sent_by_me else bool(is_read),
        )
        return self.save(message)

    def save(self, message: Message) -> Message:
        """Insert a prepared row. Raises DuplicateMessageError when the id exists."""
        self.db.add(message)
        try:
            self.db.commit()
        except (IntegrityError, FlushError) as e:
            # FlushError: the id is already in this session's identity map
            self.db.rollback()
            raise DuplicateMessageError(message.id) from e
        self.db.refresh(message)
        return message

    def create_inbound(
        self,
        inbound: InboundMessage,
        local_party_id: str,
        media_data: Optional[dict[str, Any]] = None,
    ) -> Message:
        """Persist a normalized inbound message as unread."""
        return self.create_message(
            id=inbound.id,
            counterpart_id=inbound.counterpart_id,
            local_party_id=local_party_id,
            is_sent_by_me=False,
            content=inbound.content,
            message_type=inbound.message_type.value,
            timestamp=inbound.timestamp,
            media_data=media_data,
            is_read=False,
        )

    def get_message(self, message_id: str) -> Optional[Message]:
        return self.db.get(Message, message_id)

    def get_owned_message(self, message_id: str, local_party_id: str) -> Message:
        """A message in one of the caller's threads; MessageNotFoundError otherwise."""
        message = self.get_message(message_id)
        if message is None or message.local_party_id != local_party_id:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return message

    def get_conversation(
        self,
        local_party_id: str,
        counterpart_id: str,
        skip: int = 0,
        limit: int = 200,
    ) -> List[Message]:
        """Both directions of one thread, oldest first."""
        return (
            self.db.query(Message)
            .filter(
                Message.local_party_id == local_party_id,
                Message.counterpart_id == counterpart_id,
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_messages_for_account(self, local_party_id: str) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.local_party_id == local_party_id)
            .order_by(Message.timestamp.asc())
            .all()
        )

    def get_outbound_messages(self, local_party_id: str) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.local_party_id == local_party_id,
                Message.is_sent_by_me.is_(True),
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
            .all()
        )

    def list_conversations(self, local_party_id: str) -> List[dict[str, Any]]:
        """
        Latest message and unread count per counterpart, most recent thread first.

        Only the newest row of each thread is loaded; unread counts are
        aggregated in the database.
        """
        latest = (
            select(
                Message.counterpart_id.label("counterpart_id"),
                func.max(Message.timestamp).label("latest"),
            )
            .where(Message.local_party_id == local_party_id)
            .group_by(Message.counterpart_id)
            .subquery()
        )
        rows = (
            self.db.query(Message)
            .join(
                latest,
                and_(
                    Message.counterpart_id == latest.c.counterpart_id,
                    Message.timestamp == latest.c.latest,
                ),
            )
            .filter(Message.local_party_id == local_party_id)
            .order_by(Message.timestamp.desc(), Message.id.desc())
            .all()
        )
        last_messages: dict[str, Message] = {}
        for row in rows:
            # rows sharing the latest timestamp: the highest id wins
            last_messages.setdefault(row.counterpart_id, row)
        if not last_messages:
            return []

        unread = dict(
            self.db.execute(
                select(Message.counterpart_id, func.count(Message.id))
                .where(
                    Message.local_party_id == local_party_id,
                    Message.is_sent_by_me.is_(False),
                    Message.is_read.is_(False),
                )
                .group_by(Message.counterpart_id)
            ).all()
        )
        accounts = (
            self.db.query(Account).filter(Account.id.in_(list(last_messages))).all()
        )
        names = {account.id: account.display_name for account in accounts}
        return [
            {
                "counterpart_id": counterpart_id,
                "name": names.get(counterpart_id, counterpart_id),
                "last_message": message,
                "unread_count": unread.get(counterpart_id, 0),
            }
            for counterpart_id, message in last_messages.items()
        ]
