"""Pydantic schemas for accounts and their provider settings."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountRead(BaseModel):
    id: str
    name: str
    custom_name: Optional[str] = None
    whatsapp_name: Optional[str] = None
    last_active: datetime
    display_name: str

    model_config = {"from_attributes": True}


class AccountNameUpdate(BaseModel):
    """Custom display name; empty or null clears it."""

    custom_name: Optional[str] = Field(default=None, max_length=100)


class AccountSettingsUpdate(BaseModel):
    """Provider settings for one account. Omitted fields are left unchanged."""

    access_token: Optional[str] = Field(default=None, min_length=1)
    phone_number_id: Optional[str] = None
    business_account_id: Optional[str] = None
    verify_token: Optional[str] = None
    webhook_token: Optional[str] = None
    api_version: Optional[str] = None


class AccountSettingsRead(BaseModel):
    """Settings as returned to the owner; the access token itself is never returned."""

    id: str
    phone_number_id: Optional[str] = None
    business_account_id: Optional[str] = None
    verify_token: Optional[str] = None
    webhook_token: Optional[str] = None
    api_version: Optional[str] = None
    webhook_verified: bool = False
    has_access_token: bool = False

    model_config = {"from_attributes": True}
