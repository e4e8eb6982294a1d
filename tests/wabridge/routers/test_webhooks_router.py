import asyncio
from unittest.mock import patch

from wabridge.commands.webhooks.whatsapp_command import WebhookOutcome, WhatsAppWebhookCommand
from wabridge.models.account_settings import AccountSettings
from wabridge.models.message import Message
from tests.fixtures.account_fixtures import VERIFY_TOKEN
from tests.fixtures.message_fixtures import text_message, webhook_payload


def _handshake(token, challenge="1158201444"):
    return {
        "hub.mode": "subscribe",
        "hub.verify_token": token,
        "hub.challenge": challenge,
    }


def test_tokened_handshake_echoes_challenge(anonymous_client, db, setup_settings):
    response = anonymous_client.get(
        f"/webhook/{setup_settings.webhook_token}", params=_handshake(VERIFY_TOKEN)
    )

    assert response.status_code == 200
    assert response.text == "1158201444"
    db.expire_all()
    assert db.get(AccountSettings, setup_settings.id).webhook_verified is True


def test_handshake_with_wrong_token_is_forbidden(anonymous_client, setup_settings):
    response = anonymous_client.get(
        f"/webhook/{setup_settings.webhook_token}", params=_handshake("nope")
    )
    assert response.status_code == 403
    assert response.text == "Forbidden"


def test_untokened_handshake_matches_account_verify_token(anonymous_client, setup_settings):
    response = anonymous_client.get("/webhook", params=_handshake(VERIFY_TOKEN, "abc"))
    assert response.status_code == 200
    assert response.text == "abc"


def test_handshake_with_unknown_webhook_token(anonymous_client, setup_settings):
    response = anonymous_client.get(
        "/webhook/not-a-token", params=_handshake(VERIFY_TOKEN)
    )
    assert response.status_code == 403


def test_delivery_is_stored_and_acknowledged(anonymous_client, db, setup_settings):
    response = anonymous_client.post(
        f"/webhook/{setup_settings.webhook_token}",
        json=webhook_payload([text_message()]),
    )

    assert response.status_code == 200
    assert response.text == "OK"
    row = db.get(Message, "wamid.TEXT1")
    assert row is not None
    assert row.local_party_id == setup_settings.id
    assert row.is_sent_by_me is False


def test_invalid_json_is_acknowledged(anonymous_client, db):
    response = anonymous_client.post(
        "/webhook", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 200
    assert response.text == "OK"
    assert db.query(Message).count() == 0


def test_non_object_body_is_acknowledged(anonymous_client):
    response = anonymous_client.post("/webhook", json=["not", "an", "object"])
    assert response.status_code == 200
    assert response.text == "OK"


def test_unknown_webhook_token_is_acknowledged(anonymous_client, db):
    response = anonymous_client.post(
        "/webhook/unknown-token", json=webhook_payload([text_message()])
    )
    assert response.status_code == 200
    assert db.query(Message).count() == 0


def test_delivery_is_processed_off_the_event_loop(anonymous_client, setup_settings):
    seen = {}

    def fake_execute(self, payload, webhook_token=None):
        try:
            asyncio.get_running_loop()
            seen["on_loop"] = True
        except RuntimeError:
            seen["on_loop"] = False
        seen["token"] = webhook_token
        return WebhookOutcome()

    with patch.object(WhatsAppWebhookCommand, "execute", fake_execute):
        response = anonymous_client.post(
            f"/webhook/{setup_settings.webhook_token}",
            json=webhook_payload([text_message()]),
        )

    assert response.status_code == 200
    assert seen == {"on_loop": False, "token": setup_settings.webhook_token}
