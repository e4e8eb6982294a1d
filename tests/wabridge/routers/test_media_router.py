from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from wabridge.adapters.object_storage import StorageResult
from wabridge.models.message import Message
from wabridge.routers.media_router import get_media_offload_service
from tests.fixtures.message_fixtures import COUNTERPART


@pytest.fixture(scope="function")
def media_message(db, setup_account):
    message = Message(
        id="wamid.IMG1",
        counterpart_id=COUNTERPART,
        local_party_id=setup_account.id,
        is_sent_by_me=False,
        content="[Image]",
        message_type="image",
        media_data={
            "id": "777",
            "mime_type": "image/jpeg",
            "media_url": "https://bucket.s3/old",
            "s3_uploaded": True,
        },
        timestamp=datetime(2025, 11, 15, 12, 0, tzinfo=timezone.utc),
        is_read=False,
    )
    db.add(message)
    db.commit()
    return message


@pytest.fixture(scope="function")
def offload_service(client):
    service = MagicMock()
    client.app.dependency_overrides[get_media_offload_service] = lambda: service
    return service


def test_refresh_url(client, db, media_message, offload_service):
    offload_service.regenerate_access_url.return_value = StorageResult(
        key=f"{COUNTERPART}/777.jpg", url="https://bucket.s3/new"
    )

    response = client.post("/media/refresh-url", json={"message_id": "wamid.IMG1"})

    assert response.status_code == 200
    data = response.json()
    assert data["message_id"] == "wamid.IMG1"
    assert data["media_url"] == "https://bucket.s3/new"
    assert data["expires_in"] > 0
    offload_service.regenerate_access_url.assert_called_once_with(
        COUNTERPART, "777", "image/jpeg"
    )
    db.expire_all()
    assert db.get(Message, "wamid.IMG1").media_data["media_url"] == "https://bucket.s3/old"


def test_refresh_url_unknown_message(client, offload_service):
    response = client.post("/media/refresh-url", json={"message_id": "wamid.NOPE"})
    assert response.status_code == 404


def test_refresh_url_without_media(client, setup_conversation, offload_service):
    response = client.post("/media/refresh-url", json={"message_id": "wamid.IN1"})
    assert response.status_code == 400
    offload_service.regenerate_access_url.assert_not_called()


def test_refresh_url_storage_failure(client, media_message, offload_service):
    offload_service.regenerate_access_url.return_value = StorageResult(
        key=f"{COUNTERPART}/777.jpg", error="AWS_BUCKET_NAME is not configured"
    )
    response = client.post("/media/refresh-url", json={"message_id": "wamid.IMG1"})
    assert response.status_code == 502
