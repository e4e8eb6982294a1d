from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.config import get_settings
from wabridge.db import get_db
from wabridge.exceptions import GroupNotFoundError
from wabridge.models.group import ChatGroup
from wabridge.services.group_service import GroupService


def get_current_account_id(
    x_account_id: str | None = Header(default=None, alias="X-Account-Id"),
) -> str:
    """FastAPI dependency resolving the calling account from the X-Account-Id header."""
    if not x_account_id or not x_account_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_account_id.strip()


def get_owned_group(
    group_id: str,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> ChatGroup:
    """FastAPI dependency to get a group owned by the caller."""
    try:
        return GroupService(db).get_owned(group_id, account_id)
    except GroupNotFoundError as e:
        raise HTTPException(status_code=404, detail="Group not found") from e


def get_media_storage() -> S3MediaStorage:
    """FastAPI dependency for the S3 bucket that holds message media."""
    return S3MediaStorage.from_settings(get_settings())
