"""Per-account WhatsApp Cloud API settings.

The access token is stored Fernet-encrypted; use AccountSettingsService to
read it back as a ProviderCredential.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, LargeBinary, String
from sqlalchemy.orm import relationship

from wabridge.config import DEFAULT_API_VERSION
from wabridge.db import Base
from wabridge.models.mixins import TimestampMixin


class AccountSettings(Base, TimestampMixin):
    __tablename__ = "account_settings"

    id = Column(
        String(255),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    encrypted_access_token = Column(LargeBinary, nullable=True)
    phone_number_id = Column(String(64), nullable=True, index=True)
    business_account_id = Column(String(64), nullable=True, index=True)
    verify_token = Column(String(255), nullable=True)
    webhook_token = Column(String(255), nullable=True, unique=True, index=True)
    api_version = Column(String(16), nullable=False, default=DEFAULT_API_VERSION)
    webhook_verified = Column(Boolean, nullable=False, default=False)

    account = relationship("Account", back_populates="settings")

    @property
    def has_access_token(self) -> bool:
        return self.encrypted_access_token is not None
