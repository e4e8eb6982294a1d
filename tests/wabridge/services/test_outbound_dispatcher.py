import re
from datetime import datetime, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from wabridge.adapters.base import BaseMessagingAdapter, ProviderSendResult
from wabridge.core.credentials import ProviderCredential
from wabridge.core.identifiers import generate_message_id
from wabridge.models.message import Message
from wabridge.schemas.messaging import TemplatePayload, TemplateVariables, TextPayload
from wabridge.services.outbound_dispatcher import OutboundDispatcher

CREDENTIAL = ProviderCredential(
    account_id="acct_1", access_token="token", phone_number_id="109876543210"
)


def _adapter(result=None):
    adapter = MagicMock(spec=BaseMessagingAdapter)
    adapter.send.return_value = result or ProviderSendResult(
        success=True, status_code=200, provider_message_id="wamid.SENT"
    )
    return adapter


def test_text_send_normalizes_recipient():
    adapter = _adapter()
    result = OutboundDispatcher(adapter).send(
        "+91 80972 96453", TextPayload(body="Hi"), CREDENTIAL
    )
    assert result.success
    assert result.recipient == "918097296453"
    assert result.provider_message_id == "wamid.SENT"
    assert result.message_id == "wamid.SENT"
    credential, body = adapter.send.call_args.args
    assert credential is CREDENTIAL
    assert body == {
        "messaging_product": "whatsapp",
        "to": "918097296453",
        "type": "text",
        "text": {"body": "Hi"},
    }


def test_invalid_recipient_fails_before_network():
    adapter = _adapter()
    result = OutboundDispatcher(adapter).send("123", TextPayload(body="Hi"), CREDENTIAL)
    assert not result.success
    assert "Invalid phone number format" in result.error
    adapter.send.assert_not_called()


def test_template_request_orders_parameters():
    adapter = _adapter()
    payload = TemplatePayload(
        name="order_update",
        language_code="en_US",
        variables=TemplateVariables(body={"10": "x", "2": "y", "1": "z"}),
    )
    OutboundDispatcher(adapter).send("918097296453", payload, CREDENTIAL)
    body = adapter.send.call_args.args[1]
    assert body["type"] == "template"
    template = body["template"]
    assert template["name"] == "order_update"
    assert template["language"] == {"code": "en_US"}
    assert template["components"] == [
        {
            "type": "body",
            "parameters": [
                {"type": "text", "text": "z"},
                {"type": "text", "text": "y"},
                {"type": "text", "text": "x"},
            ],
        }
    ]


def test_precomputed_components_are_reused():
    adapter = _adapter()
    components = [{"type": "body", "parameters": [{"type": "text", "text": "shared"}]}]
    payload = TemplatePayload(
        name="promo", variables=TemplateVariables(body={"1": "ignored"})
    )
    OutboundDispatcher(adapter).send("918097296453", payload, CREDENTIAL, components)
    assert adapter.send.call_args.args[1]["template"]["components"] is components


def test_provider_failure_carries_error_text():
    adapter = _adapter(
        ProviderSendResult(
            success=False, status_code=400, error="(#131030) Recipient not allowed"
        )
    )
    result = OutboundDispatcher(adapter).send(
        "918097296453", TextPayload(body="Hi"), CREDENTIAL
    )
    assert not result.success
    assert result.error == "(#131030) Recipient not allowed"
    assert result.status_code == 400
    assert result.message_id is None


def test_missing_provider_id_synthesizes_local_id():
    adapter = _adapter(ProviderSendResult(success=True, status_code=200))
    result = OutboundDispatcher(adapter, id_prefix="broadcast").send(
        "918097296453", TextPayload(body="Hi"), CREDENTIAL
    )
    assert result.success
    assert result.provider_message_id is None
    assert re.match(r"^broadcast_\d+_[0-9a-z]{9}$", result.message_id)


def test_generated_ids_are_distinct():
    ids = {generate_message_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("outgoing_") for i in ids)


def test_persist_stores_outbound_row(db, setup_account):
    dispatcher = OutboundDispatcher(_adapter())
    payload = TextPayload(body="Your order shipped")
    result = dispatcher.send("918097296453", payload, CREDENTIAL)
    when = datetime(2025, 11, 15, 12, 0, tzinfo=timezone.utc)

    stored = dispatcher.persist(db, result, payload, setup_account.id, when)

    assert stored is not None
    row = db.get(Message, "wamid.SENT")
    assert row.counterpart_id == "918097296453"
    assert row.local_party_id == setup_account.id
    assert row.is_sent_by_me is True
    assert row.is_read is True
    assert row.message_type == "text"
    assert row.content == "Your order shipped"


def test_persist_failure_is_logged_not_raised(db, setup_account):
    dispatcher = OutboundDispatcher(_adapter())
    payload = TextPayload(body="Hi")
    result = dispatcher.send("918097296453", payload, CREDENTIAL)
    broken = MagicMock(wraps=db)
    broken.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    stored = dispatcher.persist(
        broken, result, payload, setup_account.id, datetime.now(timezone.utc)
    )

    assert stored is None
    assert result.success
