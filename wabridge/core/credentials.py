"""Provider credential handling: token encryption and the per-operation credential value."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from wabridge.config import DEFAULT_API_VERSION, get_settings


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ValueError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for credential encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_token(token: str) -> bytes:
    """Encrypt an access token for storage."""
    return _get_fernet().encrypt(token.encode())


def decrypt_token(encrypted: bytes) -> str:
    """Decrypt a stored access token. Raises ValueError when the key does not match."""
    try:
        return _get_fernet().decrypt(encrypted).decode()
    except InvalidToken as e:
        raise ValueError("Stored access token cannot be decrypted") from e


@dataclass(frozen=True)
class ProviderCredential:
    """
    Everything needed to talk to the Cloud API on behalf of one account.

    Loaded once per request or broadcast and passed explicitly to adapters
    and services; never mutated while an operation runs.
    """

    account_id: str
    access_token: str
    phone_number_id: Optional[str] = None
    business_account_id: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    api_base: str = "https://graph.facebook.com"

    @property
    def base_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/{self.api_version}"

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.phone_number_id}/messages"

    @property
    def media_upload_url(self) -> str:
        return f"{self.base_url}/{self.phone_number_id}/media"

    @property
    def templates_url(self) -> Optional[str]:
        if not self.business_account_id:
            return None
        return f"{self.base_url}/{self.business_account_id}/message_templates"

    @property
    def can_send(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def __repr__(self) -> str:
        return (
            f"ProviderCredential(account_id={self.account_id!r}, "
            f"phone_number_id={self.phone_number_id!r}, api_version={self.api_version!r})"
        )
