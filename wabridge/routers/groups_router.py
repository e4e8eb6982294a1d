"""Groups API: group CRUD, membership, broadcasts and broadcast history."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from wabridge.commands.groups.broadcast_command import BroadcastCommand
from wabridge.db import get_db
from wabridge.exceptions import RecipientValidationError
from wabridge.models.group import ChatGroup
from wabridge.routers.utils.dependencies import get_current_account_id, get_owned_group
from wabridge.schemas.group import (
    GroupCreate,
    GroupMemberRead,
    GroupMembersAdd,
    GroupMembersAdded,
    GroupRead,
    GroupUpdate,
)
from wabridge.schemas.messaging import BroadcastRequest, BroadcastResult, BroadcastView
from wabridge.services.broadcast_reconstructor import BroadcastReconstructor
from wabridge.services.group_service import GroupService

router = APIRouter(
    prefix="/groups",
    tags=["groups"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=Page[GroupRead])
def list_groups(
    params: Params = Depends(),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> Page[GroupRead]:
    """List the caller's groups with pagination."""
    query = GroupService(db).owned_groups_query(account_id)
    return paginate(db, query, params=params)


@router.post("", response_model=GroupRead, status_code=201)
def create_group(
    data: GroupCreate,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> GroupRead:
    try:
        return GroupService(db).create_group(account_id, data)
    except RecipientValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/{group_id}", response_model=GroupRead)
def get_group(group: ChatGroup = Depends(get_owned_group)) -> GroupRead:
    return group


@router.patch("/{group_id}", response_model=GroupRead)
def update_group(
    data: GroupUpdate,
    group: ChatGroup = Depends(get_owned_group),
    db: Session = Depends(get_db),
) -> GroupRead:
    return GroupService(db).update_group(group, data)


@router.delete("/{group_id}", status_code=204)
def delete_group(
    group: ChatGroup = Depends(get_owned_group),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a group and its memberships. Sent messages are kept."""
    GroupService(db).delete_group(group)
    return Response(status_code=204)


@router.get("/{group_id}/members", response_model=List[GroupMemberRead])
def list_members(
    group: ChatGroup = Depends(get_owned_group),
    db: Session = Depends(get_db),
) -> List[GroupMemberRead]:
    return GroupService(db).list_members(group)


@router.post("/{group_id}/members", response_model=GroupMembersAdded)
def add_members(
    data: GroupMembersAdd,
    group: ChatGroup = Depends(get_owned_group),
    db: Session = Depends(get_db),
) -> GroupMembersAdded:
    """Add members by phone number; existing members are reported as skipped."""
    try:
        added, skipped = GroupService(db).add_members(group, data.member_ids)
    except RecipientValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return GroupMembersAdded(added=added, skipped=skipped)


@router.delete("/{group_id}/members/{member_id}", status_code=204)
def remove_member(
    member_id: str,
    group: ChatGroup = Depends(get_owned_group),
    db: Session = Depends(get_db),
) -> Response:
    if not GroupService(db).remove_member(group, member_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return Response(status_code=204)


@router.post("/{group_id}/broadcast", response_model=BroadcastResult)
def broadcast(
    group_id: str,
    body: BroadcastRequest,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> BroadcastResult:
    """Send a text or template message to every member of the group."""
    return BroadcastCommand(db).execute(account_id, group_id, body)


@router.get("/{group_id}/messages", response_model=List[BroadcastView])
def get_group_messages(
    group: ChatGroup = Depends(get_owned_group),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> List[BroadcastView]:
    """One entry per broadcast sent to this group, oldest first."""
    return BroadcastReconstructor(db).reconstruct(account_id, str(group.id))
