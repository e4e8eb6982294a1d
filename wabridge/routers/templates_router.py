"""Templates API: message templates registered on the caller's WhatsApp business account."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter
from wabridge.config import get_settings
from wabridge.db import get_db
from wabridge.exceptions import CredentialsNotConfiguredError
from wabridge.routers.utils.dependencies import get_current_account_id
from wabridge.schemas.messaging import ApprovedTemplate, TemplateList
from wabridge.services.account_settings_service import AccountSettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


def get_messaging_adapter() -> BaseMessagingAdapter:
    return WhatsAppCloudAdapter(timeout=get_settings().http_timeout_seconds)


@router.get("", response_model=TemplateList)
def list_templates(
    status: Optional[str] = Query(default=None, description="e.g. APPROVED"),
    limit: int = Query(default=50, ge=1, le=250),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
    adapter: BaseMessagingAdapter = Depends(get_messaging_adapter),
) -> TemplateList:
    """
    Templates as the provider reports them. Each item can be passed back as
    `template_data` when sending.
    """
    try:
        credential = AccountSettingsService(db).get_credential(account_id)
    except (CredentialsNotConfiguredError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not credential.business_account_id:
        raise HTTPException(
            status_code=400, detail="WhatsApp business account ID not configured"
        )

    listing = adapter.list_templates(credential, status=status, limit=limit)
    if listing.error:
        logger.error("Template listing for %s failed: %s", account_id, listing.error)
        raise HTTPException(status_code=502, detail=listing.error)
    templates = [ApprovedTemplate.model_validate(t) for t in listing.templates]
    return TemplateList(data=templates, paging=listing.paging, total_count=len(templates))
