import json
from datetime import datetime, timedelta, timezone

from wabridge.models.message import Message
from wabridge.services.broadcast_reconstructor import (
    BroadcastReconstructor,
    parse_media_data,
    reconstruct_broadcasts,
)

GROUP = "5f0c5ef6-8a3b-4b7e-9f55-3f0d9c1b2a10"
T = datetime(2025, 11, 15, 12, 0, tzinfo=timezone.utc)


def _row(message_id, timestamp, media_data, recipient="918097296453"):
    return Message(
        id=message_id,
        counterpart_id=recipient,
        local_party_id="acct_1",
        is_sent_by_me=True,
        content="Sale starts today",
        message_type="text",
        media_data=media_data,
        timestamp=timestamp,
        is_read=True,
    )


def test_shared_timestamp_is_one_broadcast_with_smallest_id():
    rows = [
        _row("c", T, {"broadcast_group_id": GROUP}, "14155550100"),
        _row("a", T, {"broadcast_group_id": GROUP}, "918097296453"),
        _row("b", T, {"broadcast_group_id": GROUP}, "447700900123"),
    ]
    views = reconstruct_broadcasts(rows, GROUP)
    assert len(views) == 1
    assert views[0].id == "a"
    assert views[0].recipient_count == 3
    assert views[0].is_sent_by_me is True
    assert views[0].group_id == GROUP


def test_different_timestamp_is_a_separate_broadcast():
    rows = [
        _row("c", T, {"broadcast_group_id": GROUP}),
        _row("a", T, {"broadcast_group_id": GROUP}),
        _row("b", T, {"broadcast_group_id": GROUP}),
        _row("d", T + timedelta(seconds=5), {"broadcast_group_id": GROUP}),
    ]
    views = reconstruct_broadcasts(rows, GROUP)
    assert [v.id for v in views] == ["a", "d"]


def test_output_ordered_by_timestamp():
    rows = [
        _row("z", T + timedelta(hours=1), {"broadcast_group_id": GROUP}),
        _row("y", T, {"broadcast_group_id": GROUP}),
    ]
    assert [v.id for v in reconstruct_broadcasts(rows, GROUP)] == ["y", "z"]


def test_broadcast_id_groups_rows():
    rows = [
        _row("b", T, {"broadcast_group_id": GROUP, "broadcast_id": "bc1"}),
        _row("a", T, {"broadcast_group_id": GROUP, "broadcast_id": "bc2"}),
        _row("c", T, {"broadcast_group_id": GROUP, "broadcast_id": "bc1"}),
    ]
    views = reconstruct_broadcasts(rows, GROUP)
    assert sorted((v.broadcast_id, v.id, v.recipient_count) for v in views) == [
        ("bc1", "b", 2),
        ("bc2", "a", 1),
    ]


def test_malformed_or_foreign_metadata_excluded():
    rows = [
        _row("a", T, None),
        _row("b", T, "{not json"),
        _row("c", T, json.dumps(["list"])),
        _row("d", T, {"broadcast_group_id": "another-group"}),
        _row("e", T, json.dumps({"broadcast_group_id": GROUP})),
    ]
    views = reconstruct_broadcasts(rows, GROUP)
    assert [v.id for v in views] == ["e"]
    assert views[0].media_data == {"broadcast_group_id": GROUP}


def test_parse_media_data():
    assert parse_media_data({"a": 1}) == {"a": 1}
    assert parse_media_data('{"a": 1}') == {"a": 1}
    assert parse_media_data("nope") is None
    assert parse_media_data(42) is None


def test_reconstruct_reads_only_the_accounts_outbound_rows(db, setup_account):
    mine = _row("a", T, {"broadcast_group_id": GROUP})
    mine.local_party_id = setup_account.id
    other = _row("b", T, {"broadcast_group_id": GROUP})
    other.local_party_id = "acct_other"
    inbound = _row("c", T, {"broadcast_group_id": GROUP})
    inbound.local_party_id = setup_account.id
    inbound.is_sent_by_me = False
    inbound.is_read = False
    db.add_all([mine, other, inbound])
    db.commit()

    views = BroadcastReconstructor(db).reconstruct(setup_account.id, GROUP)

    assert [v.id for v in views] == ["a"]
