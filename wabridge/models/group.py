"""Broadcast groups and their members.

Deleting a group removes its members; messages sent to the group are
independent history and stay.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from wabridge.db import Base
from wabridge.models.mixins import TimestampMixin, utcnow


class ChatGroup(Base, TimestampMixin):
    __tablename__ = "chat_groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    members = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="GroupMember.added_at",
    )

    @property
    def member_count(self) -> int:
        return len(self.members)


class GroupMember(Base):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "member_id", name="uq_group_members_group_member"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(
        Uuid,
        ForeignKey("chat_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id = Column(String(64), nullable=False, index=True)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    group = relationship("ChatGroup", back_populates="members")
