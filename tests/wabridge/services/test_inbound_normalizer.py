from datetime import datetime, timezone

from wabridge.schemas.messaging import MessageType
from wabridge.services.inbound_normalizer import InboundNormalizer, parse_timestamp
from tests.fixtures.message_fixtures import text_message, webhook_payload


def _media_message(kind, media, message_id="wamid.M1"):
    return {
        "id": message_id,
        "from": "918097296453",
        "timestamp": "1731672000",
        "type": kind,
        kind: media,
    }


def test_text_message_with_profile():
    payload = webhook_payload(
        [text_message()],
        contacts=[{"wa_id": "918097296453", "profile": {"name": "Asha"}}],
    )
    items = InboundNormalizer().normalize(payload)
    assert len(items) == 1
    item = items[0]
    assert item.message.id == "wamid.TEXT1"
    assert item.message.counterpart_id == "918097296453"
    assert item.message.message_type == MessageType.TEXT
    assert item.message.content == "Hello there"
    assert item.message.media is None
    assert item.message.timestamp == datetime.fromtimestamp(1731672000, tz=timezone.utc)
    assert item.profile.name == "Asha"
    assert item.phone_number_id == "109876543210"


def test_profile_name_falls_back_to_sender():
    items = InboundNormalizer().normalize(webhook_payload([text_message()]))
    assert items[0].profile.name == "918097296453"


def test_image_uses_caption_or_label():
    image = {"id": "111", "mime_type": "image/jpeg", "sha256": "abc", "caption": "Receipt"}
    with_caption = InboundNormalizer().normalize(
        webhook_payload([_media_message("image", image)])
    )[0].message
    assert with_caption.content == "Receipt"
    assert with_caption.media.id == "111"
    assert with_caption.media.mime_type == "image/jpeg"
    assert with_caption.media.sha256 == "abc"

    image.pop("caption")
    without = InboundNormalizer().normalize(
        webhook_payload([_media_message("image", image)])
    )[0].message
    assert without.content == "[Image]"


def test_document_label_uses_filename():
    doc = {"id": "222", "mime_type": "application/pdf", "filename": "invoice.pdf"}
    message = InboundNormalizer().normalize(
        webhook_payload([_media_message("document", doc)])
    )[0].message
    assert message.message_type == MessageType.DOCUMENT
    assert message.content == "[Document: invoice.pdf]"
    assert message.media.filename == "invoice.pdf"


def test_audio_voice_and_plain():
    voice = {"id": "333", "mime_type": "audio/ogg; codecs=opus", "voice": True}
    plain = {"id": "334", "mime_type": "audio/mpeg"}
    items = InboundNormalizer().normalize(
        webhook_payload(
            [
                _media_message("audio", voice, "wamid.A1"),
                _media_message("audio", plain, "wamid.A2"),
            ]
        )
    )
    assert [i.message.content for i in items] == ["[Voice Message]", "[Audio]"]


def test_sticker_has_no_caption():
    sticker = {"id": "444", "mime_type": "image/webp"}
    message = InboundNormalizer().normalize(
        webhook_payload([_media_message("sticker", sticker)])
    )[0].message
    assert message.content == "[Sticker]"
    assert message.media.caption is None


def test_unsupported_type_is_kept():
    raw = {
        "id": "wamid.LOC",
        "from": "918097296453",
        "timestamp": "1731672000",
        "type": "location",
        "location": {"latitude": 1.0, "longitude": 2.0},
    }
    items = InboundNormalizer().normalize(webhook_payload([raw]))
    assert len(items) == 1
    assert items[0].message.content == "[Unsupported message type: location]"
    assert items[0].message.message_type == MessageType.TEXT


def test_malformed_message_skipped_siblings_continue():
    broken = {"from": "918097296453", "type": "text", "text": {"body": "no id"}}
    items = InboundNormalizer().normalize(
        webhook_payload([broken, text_message("wamid.OK")])
    )
    assert [i.message.id for i in items] == ["wamid.OK"]


def test_media_message_missing_media_object_skipped():
    raw = {"id": "wamid.X", "from": "918097296453", "type": "image"}
    assert InboundNormalizer().normalize(webhook_payload([raw])) == []


def test_all_entries_and_changes_are_read():
    payload = webhook_payload([text_message("wamid.1")])
    second = webhook_payload([text_message("wamid.2")])
    payload["entry"].extend(second["entry"])
    items = InboundNormalizer().normalize(payload)
    assert [i.message.id for i in items] == ["wamid.1", "wamid.2"]


def test_empty_payload_yields_nothing():
    assert InboundNormalizer().normalize({}) == []
    assert InboundNormalizer().normalize({"entry": [{"changes": [{"value": {}}]}]}) == []


def test_sender_normalized_to_digits():
    items = InboundNormalizer().normalize(
        webhook_payload([text_message(sender="+91 80972 96453")])
    )
    assert items[0].message.counterpart_id == "918097296453"


def test_parse_timestamp_invalid_means_now():
    before = datetime.now(timezone.utc)
    assert parse_timestamp("not-a-number") >= before
    assert parse_timestamp(None) >= before


def test_non_object_message_entry_skipped_siblings_continue():
    payload = webhook_payload([text_message(), "garbage", 42])
    items = InboundNormalizer().normalize(payload)
    assert [item.message.id for item in items] == ["wamid.TEXT1"]


def test_malformed_contact_skipped_others_still_used():
    payload = webhook_payload(
        [text_message()],
        contacts=[
            {"wa_id": "918097296453", "profile": "not-an-object"},
            "garbage",
            {"wa_id": "918097296453", "profile": {"name": "Asha"}},
        ],
    )
    items = InboundNormalizer().normalize(payload)
    assert len(items) == 1
    assert items[0].profile.name == "Asha"


def test_only_malformed_contact_falls_back_to_sender():
    payload = webhook_payload(
        [text_message()],
        contacts=[{"wa_id": "918097296453", "profile": "not-an-object"}],
    )
    items = InboundNormalizer().normalize(payload)
    assert items[0].profile.name == "918097296453"
