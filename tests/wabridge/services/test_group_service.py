import uuid

import pytest

from wabridge.exceptions import (
    EmptyGroupError,
    GroupNotFoundError,
    RecipientValidationError,
)
from wabridge.models.account import Account
from wabridge.models.group import GroupMember
from wabridge.models.message import Message
from wabridge.schemas.group import GroupCreate, GroupUpdate
from wabridge.services.group_service import GroupService
from tests.fixtures.group_fixtures import MEMBER_IDS


def test_create_group_with_members(db, setup_account):
    group = GroupService(db).create_group(
        setup_account.id,
        GroupCreate(name="VIP", member_ids=["+91 80972 96453", "14155550100"]),
    )
    assert group.owner_id == setup_account.id
    assert group.member_count == 2
    assert db.get(Account, "918097296453") is not None


def test_get_owned_hides_other_owners(db, setup_account, setup_foreign_group):
    with pytest.raises(GroupNotFoundError):
        GroupService(db).get_owned(setup_foreign_group.id, setup_account.id)
    with pytest.raises(GroupNotFoundError):
        GroupService(db).get_owned(uuid.uuid4(), setup_account.id)
    with pytest.raises(GroupNotFoundError):
        GroupService(db).get_owned("not-a-uuid", setup_account.id)


def test_add_members_skips_duplicates(db, setup_group):
    added, skipped = GroupService(db).add_members(
        setup_group, ["918097296453", "+1 (212) 555-0199"]
    )
    assert added == ["12125550199"]
    assert skipped == ["918097296453"]
    assert len(GroupService(db).list_members(setup_group)) == 4


def test_add_members_rejects_invalid_number(db, setup_group):
    with pytest.raises(RecipientValidationError):
        GroupService(db).add_members(setup_group, ["123"])


def test_update_group(db, setup_group):
    group = GroupService(db).update_group(
        setup_group, GroupUpdate(name="Renamed", description=None)
    )
    assert group.name == "Renamed"
    assert group.description is None


def test_remove_member(db, setup_group):
    service = GroupService(db)
    assert service.remove_member(setup_group, "+91 80972 96453")
    assert not service.remove_member(setup_group, "918097296453")
    assert service.member_ids(setup_group) == MEMBER_IDS[1:]


def test_delete_group_keeps_messages(db, setup_group, setup_account):
    db.add(
        Message(
            id="wamid.B1",
            counterpart_id=MEMBER_IDS[0],
            local_party_id=setup_account.id,
            is_sent_by_me=True,
            content="hello",
            message_type="text",
            media_data={"broadcast_group_id": str(setup_group.id)},
            is_read=True,
        )
    )
    db.commit()
    group_id = setup_group.id

    GroupService(db).delete_group(setup_group)

    assert db.query(GroupMember).filter(GroupMember.group_id == group_id).count() == 0
    assert db.get(Message, "wamid.B1") is not None


def test_require_members(db, setup_group, setup_empty_group):
    service = GroupService(db)
    assert service.require_members(setup_group) == MEMBER_IDS
    with pytest.raises(EmptyGroupError):
        service.require_members(setup_empty_group)
