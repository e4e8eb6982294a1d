"""
Webhook routes for the WhatsApp Cloud API.

GET answers the subscription handshake; POST receives deliveries and always
answers 200 "OK" so the provider does not redeliver. The tokened variants
route a delivery to the account whose settings carry that webhook token.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from wabridge.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand
from wabridge.db import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


def _verify(
    db: Session,
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    webhook_token: Optional[str] = None,
) -> PlainTextResponse:
    result = WhatsAppWebhookCommand(db).verify(mode, token, challenge, webhook_token)
    if result is None:
        return PlainTextResponse("Forbidden", status_code=403)
    return PlainTextResponse(result, status_code=200)


async def _receive(
    request: Request, db: Session, webhook_token: Optional[str] = None
) -> PlainTextResponse:
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("WhatsApp webhook invalid JSON: %s", e)
        return PlainTextResponse("OK", status_code=200)
    if not isinstance(body, dict):
        logger.warning("WhatsApp webhook body is not a JSON object")
        return PlainTextResponse("OK", status_code=200)
    # Media offload does blocking HTTP and S3 calls; keep them off the event loop
    await run_in_threadpool(
        WhatsAppWebhookCommand(db).execute, body, webhook_token=webhook_token
    )
    return PlainTextResponse("OK", status_code=200)


@router.get("", response_class=PlainTextResponse)
def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Echo hub.challenge when hub.verify_token matches; 403 otherwise."""
    return _verify(db, mode, token, challenge)


@router.post("", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request, db: Session = Depends(get_db)
) -> PlainTextResponse:
    """Process a delivery and acknowledge it."""
    return await _receive(request, db)


@router.get("/{webhook_token}", response_class=PlainTextResponse)
def verify_account_webhook(
    webhook_token: str,
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Handshake against the verify token stored with this webhook token."""
    return _verify(db, mode, token, challenge, webhook_token)


@router.post("/{webhook_token}", response_class=PlainTextResponse)
async def receive_account_webhook(
    webhook_token: str, request: Request, db: Session = Depends(get_db)
) -> PlainTextResponse:
    return await _receive(request, db, webhook_token)
