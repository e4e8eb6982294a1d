"""
Normalized message contracts for wabridge.

Inbound webhook messages are converted into these shapes; outbound sends
(single, media and broadcast) are described by the payload models below. Stored
rows are read back through MessageRead.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MAX_TEXT_LENGTH = 4096


class MessageType(str, Enum):
    """Stored message types."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    STICKER = "sticker"
    TEMPLATE = "template"


class MediaMetadata(BaseModel):
    """
    Structured payload stored in Message.media_data.

    Media messages carry the provider media fields and the offload outcome;
    template messages carry their rendered components; broadcast rows carry
    the group tag. Unset keys are dropped when stored.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    id: Optional[str] = None
    mime_type: Optional[str] = None
    sha256: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None
    voice: Optional[bool] = None

    media_url: Optional[str] = None
    s3_uploaded: Optional[bool] = None
    upload_timestamp: Optional[datetime] = None
    upload_error: Optional[str] = None
    # Provider id of media we uploaded ourselves; `id` stays the storage id
    whatsapp_media_id: Optional[str] = None

    template_name: Optional[str] = None
    template_id: Optional[str] = None
    language: Optional[str] = None
    variables: Optional[dict[str, Any]] = None
    original_content: Optional[str] = None
    header: Optional[dict[str, Any]] = None
    body: Optional[dict[str, Any]] = None
    footer: Optional[dict[str, Any]] = None
    buttons: Optional[list[dict[str, Any]]] = None

    broadcast_group_id: Optional[str] = None
    broadcast_id: Optional[str] = None

    def to_storage(self) -> dict[str, Any]:
        """JSON-ready dict for the media_data column."""
        return self.model_dump(mode="json", exclude_none=True)


class ContactProfile(BaseModel):
    """Counterpart profile delivered alongside webhook messages."""

    wa_id: str
    name: str


class InboundMessage(BaseModel):
    """Canonical inbound message (webhook → core)."""

    id: str
    counterpart_id: str
    message_type: MessageType
    content: str = ""
    media: Optional[MediaMetadata] = None
    timestamp: datetime


class NormalizedInbound(BaseModel):
    """One normalized webhook message with its counterpart profile."""

    message: InboundMessage
    profile: ContactProfile
    phone_number_id: Optional[str] = None


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------


class TemplateVariables(BaseModel):
    """Positional variables per template component, keyed "1", "2", ..."""

    header: dict[str, str] = Field(default_factory=dict)
    body: dict[str, str] = Field(default_factory=dict)
    footer: dict[str, str] = Field(default_factory=dict)


class TemplateButton(BaseModel):
    type: str
    text: str
    url: Optional[str] = None
    phone_number: Optional[str] = None


class TemplateComponent(BaseModel):
    """Template component as defined on the provider (HEADER, BODY, FOOTER, BUTTONS)."""

    type: str
    format: Optional[str] = None
    text: Optional[str] = None
    buttons: list[TemplateButton] = Field(default_factory=list)


class TemplateDefinition(BaseModel):
    """Approved template structure, used to render display content."""

    id: Optional[str] = None
    name: Optional[str] = None
    language: str = "en"
    components: list[TemplateComponent] = Field(default_factory=list)


class ApprovedTemplate(TemplateDefinition):
    """Template as listed by the provider; usable directly as `template_data`."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    category: Optional[str] = None


class TemplateList(BaseModel):
    data: list[ApprovedTemplate]
    paging: Optional[dict[str, Any]] = None
    total_count: int


# -----------------------------------------------------------------------------
# Outbound payloads
# -----------------------------------------------------------------------------


class TextPayload(BaseModel):
    kind: Literal["text"] = "text"
    body: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)


class TemplatePayload(BaseModel):
    kind: Literal["template"] = "template"
    name: str = Field(min_length=1)
    language_code: str = "en"
    variables: TemplateVariables = Field(default_factory=TemplateVariables)
    template: Optional[TemplateDefinition] = None
    fallback_text: Optional[str] = None


OutboundPayload = Annotated[
    Union[TextPayload, TemplatePayload], Field(discriminator="kind")
]


class OutboundRequest(BaseModel):
    """
    Body shared by single sends and broadcasts.

    Either `message` (plain text) or `template_name` must be given; with a
    template, `message` is only the display fallback.
    """

    message: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)
    template_name: Optional[str] = None
    template_data: Optional[TemplateDefinition] = None
    variables: Optional[TemplateVariables] = None

    @property
    def is_empty(self) -> bool:
        return not self.message and not self.template_name

    def to_payload(self) -> Union[TextPayload, TemplatePayload]:
        if self.template_name:
            template = self.template_data
            return TemplatePayload(
                name=self.template_name,
                language_code=template.language if template else "en",
                variables=self.variables or TemplateVariables(),
                template=template,
                fallback_text=self.message,
            )
        return TextPayload(body=self.message or "")


class SendMessageRequest(OutboundRequest):
    to: str = Field(min_length=1, max_length=32)


class SendMessageResponse(BaseModel):
    success: bool
    message_id: str
    provider_message_id: Optional[str] = None
    timestamp: datetime
    stored: bool


class MediaSendResult(BaseModel):
    """Outcome for one file of a media send."""

    filename: str
    success: bool
    message_id: Optional[str] = None
    media_type: Optional[str] = None
    s3_uploaded: bool = False
    error: Optional[str] = None


class SendMediaResponse(BaseModel):
    success: bool
    total_files: int
    success_count: int
    failure_count: int
    results: list[MediaSendResult]
    timestamp: datetime


class DispatchResult(BaseModel):
    """Outcome of one provider send attempt for one recipient."""

    recipient: str
    success: bool
    provider_message_id: Optional[str] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


# -----------------------------------------------------------------------------
# Broadcasts
# -----------------------------------------------------------------------------


class BroadcastRequest(OutboundRequest):
    pass


class BroadcastError(BaseModel):
    recipient: str
    error_message: str


class BroadcastResult(BaseModel):
    broadcast_id: str
    group_id: str
    timestamp: datetime
    total: int
    success_count: int = 0
    failed_count: int = 0
    errors: list[BroadcastError] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Stored messages
# -----------------------------------------------------------------------------


class MessageRead(BaseModel):
    id: str
    counterpart_id: str
    local_party_id: str
    is_sent_by_me: bool
    content: str
    message_type: str
    media_data: Optional[dict[str, Any]] = None
    timestamp: datetime
    is_read: bool

    model_config = {"from_attributes": True}


class MessageList(BaseModel):
    messages: list[MessageRead]
    count: int


class ConversationSummary(BaseModel):
    counterpart_id: str
    name: str
    last_message: MessageRead
    unread_count: int


class BroadcastView(MessageRead):
    """One logical broadcast: the representative row of its bucket."""

    group_id: str
    broadcast_id: Optional[str] = None
    recipient_count: int = 1
