"""Settings API: the caller's WhatsApp Cloud API configuration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from wabridge.db import get_db
from wabridge.routers.utils.dependencies import get_current_account_id
from wabridge.schemas.account import AccountSettingsRead, AccountSettingsUpdate
from wabridge.services.account_settings_service import AccountSettingsService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=AccountSettingsRead)
def get_account_settings(
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> AccountSettingsRead:
    settings = AccountSettingsService(db).get_settings(account_id)
    if settings is None:
        raise HTTPException(status_code=404, detail="Settings not found")
    return settings


@router.put("", response_model=AccountSettingsRead)
def save_account_settings(
    data: AccountSettingsUpdate,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> AccountSettingsRead:
    """Create or update settings. The access token is stored encrypted."""
    try:
        return AccountSettingsService(db).save_settings(account_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
