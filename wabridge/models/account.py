"""Account model: the directory of everyone who appears in a conversation.

Counterparts are keyed by their digits-only phone number; local accounts
(business owners) by their external account id.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from wabridge.db import Base
from wabridge.models.mixins import TimestampMixin, utcnow


class Account(Base, TimestampMixin):
    """One row per known party. Created on first contact, refreshed on activity."""

    __tablename__ = "accounts"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    custom_name = Column(String(255), nullable=True)
    whatsapp_name = Column(String(255), nullable=True)
    last_active = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    settings = relationship(
        "AccountSettings",
        back_populates="account",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name
