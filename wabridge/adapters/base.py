"""
Messaging provider adapter interface.

Adapters encapsulate the provider's HTTP API. They never raise on network or
provider errors; every call returns a result object whose `error` explains
what went wrong, so callers decide whether a failure is fatal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from wabridge.core.credentials import ProviderCredential


@dataclass
class ProviderSendResult:
    """Result of one send request."""

    success: bool
    status_code: Optional[int] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    body: dict[str, Any] = field(default_factory=dict)


@dataclass
class MediaLookup:
    """Short-lived download URL for a provider media id."""

    url: Optional[str] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MediaDownload:
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MediaUpload:
    """Provider media id for bytes uploaded ahead of a send."""

    media_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class TemplateListing:
    templates: list[dict[str, Any]] = field(default_factory=list)
    paging: Optional[dict[str, Any]] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


class BaseMessagingAdapter(ABC):
    """Contract for messaging providers."""

    @abstractmethod
    def send(
        self, credential: ProviderCredential, request_body: dict[str, Any]
    ) -> ProviderSendResult:
        """POST a message request body to the provider."""
        ...

    @abstractmethod
    def get_media_url(self, credential: ProviderCredential, media_id: str) -> MediaLookup:
        """Resolve a media id into a temporary download URL."""
        ...

    @abstractmethod
    def download_media(self, credential: ProviderCredential, url: str) -> MediaDownload:
        """Fetch the bytes behind a download URL."""
        ...

    @abstractmethod
    def upload_media(
        self,
        credential: ProviderCredential,
        content: bytes,
        mime_type: str,
        filename: Optional[str] = None,
    ) -> MediaUpload:
        """Upload bytes to the provider so a message can reference them by id."""
        ...

    @abstractmethod
    def list_templates(
        self,
        credential: ProviderCredential,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> TemplateListing:
        """Message templates registered on the business account."""
        ...

    def verify_webhook(
        self,
        mode: Optional[str],
        token: Optional[str],
        challenge: Optional[str],
        expected_token: Optional[str],
    ) -> Optional[str]:
        """
        Subscription handshake. Return the challenge to echo on success,
        None to reject.
        """
        if mode != "subscribe" or not token or not expected_token:
            return None
        if token != expected_token:
            return None
        return challenge or ""
