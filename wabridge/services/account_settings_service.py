"""Per-account provider settings and credential loading."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wabridge.config import DEFAULT_API_VERSION, get_settings
from wabridge.core.credentials import ProviderCredential, decrypt_token, encrypt_token
from wabridge.exceptions import CredentialsNotConfiguredError
from wabridge.models.account_settings import AccountSettings
from wabridge.schemas.account import AccountSettingsUpdate
from wabridge.services.account_service import AccountService


class AccountSettingsService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_settings(self, account_id: str) -> Optional[AccountSettings]:
        return self.db.get(AccountSettings, account_id)

    def get_by_webhook_token(self, webhook_token: str) -> Optional[AccountSettings]:
        return (
            self.db.query(AccountSettings)
            .filter(AccountSettings.webhook_token == webhook_token)
            .first()
        )

    def get_by_phone_number_id(self, phone_number_id: str) -> Optional[AccountSettings]:
        return (
            self.db.query(AccountSettings)
            .filter(AccountSettings.phone_number_id == phone_number_id)
            .first()
        )

    def get_by_verify_token(self, verify_token: str) -> Optional[AccountSettings]:
        return (
            self.db.query(AccountSettings)
            .filter(AccountSettings.verify_token == verify_token)
            .first()
        )

    def save_settings(
        self, account_id: str, data: AccountSettingsUpdate
    ) -> AccountSettings:
        """Create or update the settings row; the account is created if missing."""
        AccountService(self.db).ensure_accounts([account_id])
        settings = self.get_settings(account_id)
        if settings is None:
            settings = AccountSettings(id=account_id, api_version=DEFAULT_API_VERSION)
            self.db.add(settings)
        update_data = data.model_dump(exclude_unset=True)
        access_token = update_data.pop("access_token", None)
        if access_token:
            settings.encrypted_access_token = encrypt_token(access_token)
        for key, value in update_data.items():
            if key == "api_version" and not value:
                continue
            setattr(settings, key, value)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValueError("Webhook token is already in use") from e
        self.db.refresh(settings)
        return settings

    def mark_webhook_verified(self, settings: AccountSettings) -> None:
        settings.webhook_verified = True
        self.db.commit()

    def credential_from(self, settings: Optional[AccountSettings]) -> Optional[ProviderCredential]:
        """Build a ProviderCredential from a settings row; None without a token."""
        if settings is None or not settings.has_access_token:
            return None
        app_settings = get_settings()
        return ProviderCredential(
            account_id=settings.id,
            access_token=decrypt_token(settings.encrypted_access_token),
            phone_number_id=settings.phone_number_id,
            business_account_id=settings.business_account_id,
            api_version=settings.api_version or app_settings.whatsapp_api_version,
            api_base=app_settings.whatsapp_api_base,
        )

    def get_credential(self, account_id: str) -> ProviderCredential:
        """Credential able to send messages; raises CredentialsNotConfiguredError otherwise."""
        credential = self.credential_from(self.get_settings(account_id))
        if credential is None or not credential.can_send:
            raise CredentialsNotConfiguredError(
                "WhatsApp credentials not configured. "
                "Please configure your WhatsApp settings first."
            )
        return credential
