"""
WhatsApp Cloud API adapter.

Uses requests for the Graph API: message sends, media uploads, media URL
lookups, media downloads and template listings. Every call carries a timeout; timeouts and connection
errors are reported like any other provider failure.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from wabridge.adapters.base import (
    BaseMessagingAdapter,
    MediaDownload,
    MediaLookup,
    MediaUpload,
    ProviderSendResult,
    TemplateListing,
)
from wabridge.core.credentials import ProviderCredential
from wabridge.infra.logging_config import get_logger

logger = get_logger("whatsapp_adapter")

MESSAGING_PRODUCT = "whatsapp"
DEFAULT_TIMEOUT_SECONDS = 30.0
# Cloud API documents are capped at 100 MB
MAX_MEDIA_BYTES = 100 * 1024 * 1024
DOWNLOAD_CHUNK_SIZE = 64 * 1024
MEDIA_MESSAGE_TYPES = ("image", "video", "audio", "document")
# Cloud API accepts captions on these media types only
CAPTIONED_MEDIA_TYPES = ("image", "video", "document")
TEMPLATE_FIELDS = "id,name,status,category,language,components"


def build_text_request(to: str, body: str) -> dict[str, Any]:
    return {
        "messaging_product": MESSAGING_PRODUCT,
        "to": to,
        "type": "text",
        "text": {"body": body},
    }


def build_template_request(to: str, template: dict[str, Any]) -> dict[str, Any]:
    return {
        "messaging_product": MESSAGING_PRODUCT,
        "to": to,
        "type": "template",
        "template": template,
    }


def media_type_for_mime(mime_type: Optional[str]) -> str:
    """Message type a file is sent as: image, video or audio by MIME family, else document."""
    family = (mime_type or "").split("/", 1)[0].strip().lower()
    if family in ("image", "video", "audio"):
        return family
    return "document"


def build_media_request(
    to: str,
    media_type: str,
    media_id: str,
    caption: Optional[str] = None,
    filename: Optional[str] = None,
) -> dict[str, Any]:
    if media_type not in MEDIA_MESSAGE_TYPES:
        raise ValueError(f"Unsupported media type: {media_type}")
    media: dict[str, Any] = {"id": media_id}
    if caption and media_type in CAPTIONED_MEDIA_TYPES:
        media["caption"] = caption
    if filename and media_type == "document":
        media["filename"] = filename
    return {
        "messaging_product": MESSAGING_PRODUCT,
        "to": to,
        "type": media_type,
        media_type: media,
    }


def _error_message(resp: requests.Response) -> str:
    """Provider error text from a failed response."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"HTTP {resp.status_code}: {resp.text[:500] if resp.text else 'no body'}"


class WhatsAppCloudAdapter(BaseMessagingAdapter):
    """Cloud API client. Stateless apart from the timeout; safe to share across threads."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_media_bytes: int = MAX_MEDIA_BYTES,
    ) -> None:
        self._timeout = timeout
        self._max_media_bytes = max_media_bytes

    def send(
        self, credential: ProviderCredential, request_body: dict[str, Any]
    ) -> ProviderSendResult:
        """POST {base}/{phone_number_id}/messages and extract the provider message id."""
        headers = {**credential.auth_headers(), "Content-Type": "application/json"}
        try:
            resp = requests.post(
                credential.messages_url,
                json=request_body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("WhatsApp send to %s failed: %s", request_body.get("to"), e)
            return ProviderSendResult(success=False, error=str(e))

        if not resp.ok:
            error = _error_message(resp)
            logger.warning(
                "WhatsApp API error for %s (HTTP %s): %s",
                request_body.get("to"),
                resp.status_code,
                error,
            )
            return ProviderSendResult(
                success=False, status_code=resp.status_code, error=error
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        provider_message_id: Optional[str] = None
        messages = data.get("messages")
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            provider_message_id = messages[0].get("id")
        return ProviderSendResult(
            success=True,
            status_code=resp.status_code,
            provider_message_id=provider_message_id,
            body=data,
        )

    def get_media_url(self, credential: ProviderCredential, media_id: str) -> MediaLookup:
        """GET {base}/{media_id}; the returned URL expires after a few minutes."""
        if not credential.access_token:
            return MediaLookup(error="WhatsApp access token not provided")
        url = f"{credential.base_url}/{media_id}"
        try:
            resp = requests.get(
                url, headers=credential.auth_headers(), timeout=self._timeout
            )
        except requests.RequestException as e:
            return MediaLookup(error=str(e))
        if not resp.ok:
            return MediaLookup(error=_error_message(resp))
        try:
            data = resp.json()
        except ValueError as e:
            return MediaLookup(error=f"Invalid JSON: {e}")
        media_url = data.get("url") if isinstance(data, dict) else None
        if not media_url:
            return MediaLookup(error="Media info response has no url")
        return MediaLookup(url=media_url, mime_type=data.get("mime_type"))

    def download_media(self, credential: ProviderCredential, url: str) -> MediaDownload:
        """Stream the media bytes into memory, refusing anything over the size cap."""
        try:
            resp = requests.get(
                url,
                headers=credential.auth_headers(),
                timeout=self._timeout,
                stream=True,
            )
        except requests.RequestException as e:
            return MediaDownload(error=str(e))
        try:
            if not resp.ok:
                return MediaDownload(error=_error_message(resp))
            buffer = bytearray()
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if not chunk:
                    continue
                buffer.extend(chunk)
                if len(buffer) > self._max_media_bytes:
                    return MediaDownload(
                        error=f"Media exceeds {self._max_media_bytes} bytes"
                    )
            return MediaDownload(
                content=bytes(buffer),
                content_type=resp.headers.get("Content-Type"),
            )
        except requests.RequestException as e:
            return MediaDownload(error=str(e))
        finally:
            resp.close()

    def upload_media(
        self,
        credential: ProviderCredential,
        content: bytes,
        mime_type: str,
        filename: Optional[str] = None,
    ) -> MediaUpload:
        """POST {base}/{phone_number_id}/media as multipart; returns the provider media id."""
        if len(content) > self._max_media_bytes:
            return MediaUpload(error=f"Media exceeds {self._max_media_bytes} bytes")
        try:
            resp = requests.post(
                credential.media_upload_url,
                headers=credential.auth_headers(),
                files={"file": (filename or "upload", content, mime_type)},
                data={"messaging_product": MESSAGING_PRODUCT, "type": mime_type},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("WhatsApp media upload failed: %s", e)
            return MediaUpload(error=str(e))
        if not resp.ok:
            error = _error_message(resp)
            logger.warning("WhatsApp media upload error (HTTP %s): %s", resp.status_code, error)
            return MediaUpload(status_code=resp.status_code, error=error)
        try:
            data = resp.json()
        except ValueError as e:
            return MediaUpload(status_code=resp.status_code, error=f"Invalid JSON: {e}")
        media_id = data.get("id") if isinstance(data, dict) else None
        if not media_id:
            return MediaUpload(
                status_code=resp.status_code, error="Media upload response has no id"
            )
        return MediaUpload(media_id=str(media_id), status_code=resp.status_code)

    def list_templates(
        self,
        credential: ProviderCredential,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> TemplateListing:
        """GET {base}/{business_account_id}/message_templates, optionally filtered by status."""
        url = credential.templates_url
        if url is None:
            return TemplateListing(error="WhatsApp business account ID not configured")
        params: dict[str, Any] = {"fields": TEMPLATE_FIELDS, "limit": limit}
        if status:
            params["status"] = status.upper()
        try:
            resp = requests.get(
                url, headers=credential.auth_headers(), params=params, timeout=self._timeout
            )
        except requests.RequestException as e:
            return TemplateListing(error=str(e))
        if not resp.ok:
            return TemplateListing(status_code=resp.status_code, error=_error_message(resp))
        try:
            data = resp.json()
        except ValueError as e:
            return TemplateListing(status_code=resp.status_code, error=f"Invalid JSON: {e}")
        if not isinstance(data, dict):
            data = {}
        templates = [t for t in data.get("data") or [] if isinstance(t, dict)]
        paging = data.get("paging") if isinstance(data.get("paging"), dict) else None
        return TemplateListing(
            templates=templates, paging=paging, status_code=resp.status_code
        )
