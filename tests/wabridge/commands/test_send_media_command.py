from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from wabridge.adapters.base import BaseMessagingAdapter, MediaUpload, ProviderSendResult
from wabridge.adapters.object_storage import S3MediaStorage, StorageResult
from wabridge.commands.outbound.send_media_command import MediaFile, SendMediaCommand
from wabridge.models.account import Account
from wabridge.models.message import Message
from tests.fixtures.message_fixtures import COUNTERPART

PNG = MediaFile(filename="photo.png", content_type="image/png", content=b"\x89PNG-data")
PDF = MediaFile(filename="quote.pdf", content_type="application/pdf", content=b"%PDF-1.7")


def _adapter(fail_upload_for=()):
    adapter = MagicMock(spec=BaseMessagingAdapter)

    def upload_media(credential, content, mime_type, filename=None):
        if filename in fail_upload_for:
            return MediaUpload(status_code=400, error="Param file must be a file")
        return MediaUpload(media_id=f"media-{filename}", status_code=200)

    def send(credential, body):
        return ProviderSendResult(
            success=True,
            status_code=200,
            provider_message_id=f"wamid.{body[body['type']]['id']}",
        )

    adapter.upload_media.side_effect = upload_media
    adapter.send.side_effect = send
    return adapter


def _storage(error=None):
    storage = MagicMock(spec=S3MediaStorage)

    def upload(counterpart_id, media_id, mime_type, content):
        key = f"{counterpart_id}/{media_id}.bin"
        if error:
            return StorageResult(key=key, error=error)
        return StorageResult(key=key, url=f"https://bucket.s3/{key}?signed")

    storage.upload.side_effect = upload
    return storage


def test_sends_each_file_and_stores_rows(db, setup_settings):
    adapter = _adapter()
    storage = _storage()

    result = SendMediaCommand(db, adapter=adapter, storage=storage).execute(
        setup_settings.id, "+91 80972 96453", [PNG, PDF], captions=["Our new shop"]
    )

    assert result.success is True
    assert result.total_files == 2
    assert result.success_count == 2
    assert [r.media_type for r in result.results] == ["image", "document"]
    assert all(r.s3_uploaded for r in result.results)

    image_body = adapter.send.call_args_list[0].args[1]
    assert image_body["to"] == COUNTERPART
    assert image_body["image"] == {"id": "media-photo.png", "caption": "Our new shop"}
    document_body = adapter.send.call_args_list[1].args[1]
    assert document_body["document"] == {"id": "media-quote.pdf", "filename": "quote.pdf"}

    image_row = db.get(Message, "wamid.media-photo.png")
    assert image_row.is_sent_by_me is True
    assert image_row.counterpart_id == COUNTERPART
    assert image_row.message_type == "image"
    assert image_row.content == "Our new shop"
    assert image_row.media_data["whatsapp_media_id"] == "media-photo.png"
    assert image_row.media_data["id"].startswith("upload_")
    assert image_row.media_data["s3_uploaded"] is True
    assert image_row.media_data["media_url"].startswith(f"https://bucket.s3/{COUNTERPART}/")

    document_row = db.get(Message, "wamid.media-quote.pdf")
    assert document_row.content == "[Document]"
    assert document_row.media_data["filename"] == "quote.pdf"

    uploaded_ids = [c.args[1] for c in storage.upload.call_args_list]
    assert uploaded_ids == [image_row.media_data["id"], document_row.media_data["id"]]
    assert db.get(Account, COUNTERPART) is not None


def test_one_failed_upload_does_not_stop_others(db, setup_settings):
    adapter = _adapter(fail_upload_for={"photo.png"})

    result = SendMediaCommand(db, adapter=adapter, storage=_storage()).execute(
        setup_settings.id, COUNTERPART, [PNG, PDF]
    )

    assert result.success is True
    assert result.success_count == 1
    assert result.failure_count == 1
    assert result.results[0].success is False
    assert result.results[0].error == "Param file must be a file"
    assert adapter.send.call_count == 1
    assert db.query(Message).count() == 1


def test_s3_failure_still_stores_sent_message(db, setup_settings):
    result = SendMediaCommand(
        db, adapter=_adapter(), storage=_storage(error="AWS_BUCKET_NAME is not configured")
    ).execute(setup_settings.id, COUNTERPART, [PNG])

    assert result.success_count == 1
    assert result.results[0].s3_uploaded is False
    row = db.get(Message, "wamid.media-photo.png")
    assert row.media_data["s3_uploaded"] is False
    assert row.media_data["upload_error"] == "AWS_BUCKET_NAME is not configured"
    assert "media_url" not in row.media_data


def test_provider_send_failure_is_reported(db, setup_settings):
    adapter = _adapter()
    adapter.send.side_effect = None
    adapter.send.return_value = ProviderSendResult(
        success=False, status_code=400, error="Recipient phone number not in allowed list"
    )
    storage = _storage()

    result = SendMediaCommand(db, adapter=adapter, storage=storage).execute(
        setup_settings.id, COUNTERPART, [PNG]
    )

    assert result.success is False
    assert result.results[0].error == "Recipient phone number not in allowed list"
    storage.upload.assert_not_called()
    assert db.query(Message).count() == 0


def test_empty_file_is_skipped(db, setup_settings):
    adapter = _adapter()
    empty = MediaFile(filename="blank.png", content_type="image/png", content=b"")

    result = SendMediaCommand(db, adapter=adapter, storage=_storage()).execute(
        setup_settings.id, COUNTERPART, [empty]
    )

    assert result.results[0].error == "File is empty"
    adapter.upload_media.assert_not_called()


def test_invalid_recipient_rejected_before_upload(db, setup_settings):
    adapter = _adapter()
    with pytest.raises(HTTPException) as exc:
        SendMediaCommand(db, adapter=adapter, storage=_storage()).execute(
            setup_settings.id, "123", [PNG]
        )
    assert exc.value.status_code == 400
    adapter.upload_media.assert_not_called()


def test_requires_files_and_settings(db, setup_account):
    command = SendMediaCommand(db, adapter=_adapter(), storage=_storage())
    with pytest.raises(HTTPException) as no_files:
        command.execute(setup_account.id, COUNTERPART, [])
    assert no_files.value.status_code == 400

    with pytest.raises(HTTPException) as no_settings:
        command.execute(setup_account.id, COUNTERPART, [PNG])
    assert no_settings.value.status_code == 400
