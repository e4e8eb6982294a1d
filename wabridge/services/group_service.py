"""Service for broadcast group CRUD. Every read and write is scoped to the owner."""

from __future__ import annotations

import uuid
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from wabridge.core.phone import normalize_phone, validate_recipient
from wabridge.exceptions import EmptyGroupError, GroupNotFoundError
from wabridge.models.group import ChatGroup, GroupMember
from wabridge.models.mixins import utcnow
from wabridge.schemas.group import GroupCreate, GroupUpdate
from wabridge.services.account_service import AccountService, dialect_insert

GroupId = Union[str, UUID]


def _as_uuid(group_id: GroupId) -> Optional[UUID]:
    if isinstance(group_id, UUID):
        return group_id
    try:
        return UUID(str(group_id))
    except ValueError:
        return None


class GroupService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.account_service = AccountService(db)

    def owned_groups_query(self, owner_id: str):
        """Select of the owner's groups, newest first (for pagination)."""
        return (
            select(ChatGroup)
            .where(ChatGroup.owner_id == owner_id)
            .order_by(ChatGroup.created_at.desc(), ChatGroup.name.asc())
        )

    def list_groups(self, owner_id: str) -> List[ChatGroup]:
        return list(self.db.scalars(self.owned_groups_query(owner_id)).all())

    def get_owned(self, group_id: GroupId, owner_id: str) -> ChatGroup:
        """
        Fetch a group the caller owns.

        Raises GroupNotFoundError for unknown ids and for other owners' groups
        alike, so ownership is not disclosed.
        """
        key = _as_uuid(group_id)
        group = self.db.get(ChatGroup, key) if key is not None else None
        if group is None or group.owner_id != owner_id:
            raise GroupNotFoundError(f"Group {group_id} not found")
        return group

    def create_group(self, owner_id: str, data: GroupCreate) -> ChatGroup:
        group = ChatGroup(
            owner_id=owner_id,
            name=data.name,
            description=data.description,
        )
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        if data.member_ids:
            self.add_members(group, data.member_ids)
            self.db.refresh(group)
        return group

    def update_group(self, group: ChatGroup, data: GroupUpdate) -> ChatGroup:
        if data.name is not None:
            group.name = data.name
        if "description" in data.model_fields_set:
            group.description = data.description
        self.db.commit()
        self.db.refresh(group)
        return group

    def delete_group(self, group: ChatGroup) -> None:
        """Delete the group and its memberships; messages are untouched."""
        self.db.delete(group)
        self.db.commit()

    def add_members(
        self, group: ChatGroup, member_ids: List[str]
    ) -> tuple[list[str], list[str]]:
        """
        Add members by phone number.

        Ids are normalized to digits and validated first; one bad id rejects
        the whole call with RecipientValidationError. Accounts are created for
        unknown numbers. Returns (added, skipped) where skipped are ids that
        were already members.
        """
        normalized = list(
            dict.fromkeys(validate_recipient(member_id) for member_id in member_ids)
        )
        self.account_service.ensure_accounts(normalized)

        insert = dialect_insert(self.db)
        added: list[str] = []
        skipped: list[str] = []
        for member_id in normalized:
            stmt = (
                insert(GroupMember)
                .values(
                    id=uuid.uuid4(),
                    group_id=group.id,
                    member_id=member_id,
                    added_at=utcnow(),
                )
                .on_conflict_do_nothing(index_elements=["group_id", "member_id"])
            )
            result = self.db.execute(stmt)
            if result.rowcount:
                added.append(member_id)
            else:
                skipped.append(member_id)
        self.db.commit()
        self.db.expire(group, ["members"])
        return added, skipped

    def list_members(self, group: ChatGroup) -> List[GroupMember]:
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group.id)
            .order_by(GroupMember.added_at.asc(), GroupMember.member_id.asc())
            .all()
        )

    def member_ids(self, group: ChatGroup) -> List[str]:
        return [member.member_id for member in self.list_members(group)]

    def require_members(self, group: ChatGroup) -> List[str]:
        """Member ids in membership order; EmptyGroupError when there are none."""
        members = self.member_ids(group)
        if not members:
            raise EmptyGroupError("Group has no members")
        return members

    def remove_member(self, group: ChatGroup, member_id: str) -> bool:
        """Remove one member; False when the id was not a member."""
        member = (
            self.db.query(GroupMember)
            .filter(
                GroupMember.group_id == group.id,
                GroupMember.member_id == normalize_phone(member_id),
            )
            .first()
        )
        if member is None:
            return False
        self.db.delete(member)
        self.db.commit()
        self.db.expire(group, ["members"])
        return True
