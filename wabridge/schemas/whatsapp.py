"""
WhatsApp Cloud API webhook payload shapes.

The envelope ({entry: [{changes: [{value: {...}}]}]}) is validated as a
whole, but messages and contacts stay raw until parse_message() and
parse_contact() validate them one by one, so one malformed record never
rejects its siblings.

Each message variant knows how to render itself into display content and
optional media metadata.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wabridge.schemas.messaging import MediaMetadata, MessageType


def _to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


# -----------------------------------------------------------------------------
# Message variants
# -----------------------------------------------------------------------------


class MediaObject(BaseModel):
    """Media sub-object shared by image, video, document, audio and sticker."""

    id: str
    mime_type: Optional[str] = None
    sha256: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None
    voice: Optional[bool] = None

    coerce_to_str = field_validator("id", mode="before")(_to_str)


class TextBody(BaseModel):
    body: str = ""


class WhatsAppMessage(BaseModel):
    """Fields common to every inbound message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_type: ClassVar[MessageType] = MessageType.TEXT

    id: str
    from_: str = Field(alias="from")
    timestamp: Optional[str] = None
    type: str

    coerce_to_str = field_validator("id", "from_", "timestamp", mode="before")(_to_str)

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        """Return (display content, media metadata or None). Variants override this."""
        return f"[Unsupported message type: {self.type}]", None


class TextMessage(WhatsAppMessage):
    type: Literal["text"]
    text: TextBody = Field(default_factory=TextBody)

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        return self.text.body, None


class ImageMessage(WhatsAppMessage):
    message_type: ClassVar[MessageType] = MessageType.IMAGE

    type: Literal["image"]
    image: MediaObject

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        media = MediaMetadata(
            type="image",
            id=self.image.id,
            mime_type=self.image.mime_type,
            sha256=self.image.sha256,
            caption=self.image.caption,
        )
        return self.image.caption or "[Image]", media


class VideoMessage(WhatsAppMessage):
    message_type: ClassVar[MessageType] = MessageType.VIDEO

    type: Literal["video"]
    video: MediaObject

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        media = MediaMetadata(
            type="video",
            id=self.video.id,
            mime_type=self.video.mime_type,
            sha256=self.video.sha256,
            caption=self.video.caption,
        )
        return self.video.caption or "[Video]", media


class DocumentMessage(WhatsAppMessage):
    message_type: ClassVar[MessageType] = MessageType.DOCUMENT

    type: Literal["document"]
    document: MediaObject

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        media = MediaMetadata(
            type="document",
            id=self.document.id,
            mime_type=self.document.mime_type,
            sha256=self.document.sha256,
            filename=self.document.filename,
        )
        return f"[Document: {self.document.filename or 'Unknown'}]", media


class AudioMessage(WhatsAppMessage):
    message_type: ClassVar[MessageType] = MessageType.AUDIO

    type: Literal["audio"]
    audio: MediaObject

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        media = MediaMetadata(
            type="audio",
            id=self.audio.id,
            mime_type=self.audio.mime_type,
            sha256=self.audio.sha256,
            voice=self.audio.voice,
        )
        return "[Voice Message]" if self.audio.voice else "[Audio]", media


class StickerMessage(WhatsAppMessage):
    message_type: ClassVar[MessageType] = MessageType.STICKER

    type: Literal["sticker"]
    sticker: MediaObject

    def render(self) -> tuple[str, Optional[MediaMetadata]]:
        media = MediaMetadata(
            type="sticker",
            id=self.sticker.id,
            mime_type=self.sticker.mime_type,
            sha256=self.sticker.sha256,
        )
        return "[Sticker]", media


class UnsupportedMessage(WhatsAppMessage):
    """Any type without a dedicated variant (location, reaction, ...). Stored as text."""


MESSAGE_VARIANTS: dict[str, type[WhatsAppMessage]] = {
    "text": TextMessage,
    "image": ImageMessage,
    "video": VideoMessage,
    "document": DocumentMessage,
    "audio": AudioMessage,
    "sticker": StickerMessage,
}


def parse_message(raw: dict[str, Any]) -> WhatsAppMessage:
    """Validate a raw message dict into its variant. Raises pydantic.ValidationError."""
    variant = MESSAGE_VARIANTS.get(raw.get("type"), UnsupportedMessage)
    return variant.model_validate(raw)


# -----------------------------------------------------------------------------
# Envelope
# -----------------------------------------------------------------------------


class ContactProfileName(BaseModel):
    name: Optional[str] = None


class WebhookContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[ContactProfileName] = None

    coerce_to_str = field_validator("wa_id", mode="before")(_to_str)


class WebhookValueMetadata(BaseModel):
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None

    coerce_to_str = field_validator(
        "phone_number_id", "display_phone_number", mode="before"
    )(_to_str)


class WebhookValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[WebhookValueMetadata] = None
    # Raw records; validated one at a time so a bad one only skips itself
    contacts: list[Any] = Field(default_factory=list)
    messages: list[Any] = Field(default_factory=list)


class WebhookChange(BaseModel):
    field: Optional[str] = None
    value: WebhookValue = Field(default_factory=WebhookValue)


class WebhookEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WebhookChange] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[WebhookEntry] = Field(default_factory=list)


def parse_contact(raw: Any) -> WebhookContact:
    """Validate one raw contact record. Raises pydantic.ValidationError."""
    return WebhookContact.model_validate(raw)
