"""Fixtures for broadcast groups."""

import pytest

from wabridge.models.group import ChatGroup, GroupMember

MEMBER_IDS = ["918097296453", "14155550100", "447700900123"]


@pytest.fixture(scope="function")
def setup_group(db, faker, setup_account):
    """A group owned by setup_account with three members."""
    group = ChatGroup(
        owner_id=setup_account.id,
        name=faker.catch_phrase(),
        description=faker.sentence(),
    )
    db.add(group)
    db.commit()
    for member_id in MEMBER_IDS:
        db.add(GroupMember(group_id=group.id, member_id=member_id))
        db.commit()
    db.refresh(group)
    return group


@pytest.fixture(scope="function")
def setup_empty_group(db, faker, setup_account):
    group = ChatGroup(owner_id=setup_account.id, name=faker.catch_phrase())
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


@pytest.fixture(scope="function")
def setup_foreign_group(db, faker):
    """A group owned by some other account."""
    group = ChatGroup(owner_id="acct_someone_else", name=faker.catch_phrase())
    db.add(group)
    db.commit()
    db.add(GroupMember(group_id=group.id, member_id=MEMBER_IDS[0]))
    db.commit()
    db.refresh(group)
    return group
