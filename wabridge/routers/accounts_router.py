"""Accounts API: display names for the people in the caller's conversations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from wabridge.db import get_db
from wabridge.routers.utils.dependencies import get_current_account_id
from wabridge.schemas.account import AccountNameUpdate, AccountRead
from wabridge.services.account_service import AccountService

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
    dependencies=[Depends(get_current_account_id)],
    responses={404: {"description": "Not found"}},
)


@router.get("/{account_id}", response_model=AccountRead)
def get_account(account_id: str, db: Session = Depends(get_db)) -> AccountRead:
    account = AccountService(db).get_account(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.patch("/{account_id}/name", response_model=AccountRead)
def update_account_name(
    account_id: str,
    data: AccountNameUpdate,
    db: Session = Depends(get_db),
) -> AccountRead:
    """Set the custom name shown instead of the WhatsApp profile name."""
    account = AccountService(db).set_custom_name(account_id, data.custom_name)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account
