"""Message API: single sends, media sends and conversation reads for the calling account."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.commands.outbound.send_media_command import MediaFile, SendMediaCommand
from wabridge.commands.outbound.send_message_command import SendMessageCommand
from wabridge.core.phone import normalize_phone
from wabridge.db import get_db
from wabridge.routers.utils.dependencies import get_current_account_id, get_media_storage
from wabridge.schemas.messaging import (
    ConversationSummary,
    MessageList,
    MessageRead,
    SendMediaResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from wabridge.services.message_service import MessageService

router = APIRouter(tags=["messages"])


@router.post("/messages/send", response_model=SendMessageResponse)
def send_message(
    body: SendMessageRequest,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> SendMessageResponse:
    """Send a text or template message to one recipient."""
    return SendMessageCommand(db).execute(account_id, body)


@router.post("/messages/send-media", response_model=SendMediaResponse)
async def send_media(
    to: str = Form(min_length=1, max_length=32),
    files: list[UploadFile] = File(...),
    captions: Optional[list[str]] = Form(default=None),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
    storage: S3MediaStorage = Depends(get_media_storage),
) -> SendMediaResponse:
    """Send files as media messages; `captions[i]` goes with `files[i]`."""
    media_files = [
        MediaFile(
            filename=upload.filename or "upload",
            content_type=upload.content_type,
            content=await upload.read(),
        )
        for upload in files
    ]
    # Provider and S3 calls block
    return await run_in_threadpool(
        SendMediaCommand(db, storage=storage).execute,
        account_id,
        to,
        media_files,
        captions or [],
    )


@router.get("/messages", response_model=MessageList)
def get_messages(
    counterpart_id: str = Query(min_length=1),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=1, le=1000),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> MessageList:
    """Both directions of the conversation with one counterpart, oldest first."""
    messages = MessageService(db).get_conversation(
        account_id, normalize_phone(counterpart_id) or counterpart_id, skip, limit
    )
    return MessageList(
        messages=[MessageRead.model_validate(m) for m in messages],
        count=len(messages),
    )


@router.get("/conversations", response_model=list[ConversationSummary])
def list_conversations(
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> list[ConversationSummary]:
    summaries = MessageService(db).list_conversations(account_id)
    return [
        ConversationSummary.model_validate(summary, from_attributes=True)
        for summary in summaries
    ]
