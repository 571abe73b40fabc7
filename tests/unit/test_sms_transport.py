import base64
from urllib.parse import parse_qs

import httpx
import pytest

from matching_api.infra import sms as sms_transport


def _transport(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return sms_transport.TwilioTransport(
        account_sid="AC123",
        auth_token="secret",
        from_number="+15550001111",
        base_url="https://twilio.test",
        http=client,
    )


@pytest.mark.asyncio
async def test_twilio_posts_form_with_basic_auth():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json={"sid": "SM42", "status": "queued"})

    receipt = await _transport(handler).send("+15551234567", "hello")

    assert receipt.accepted is True
    assert receipt.sid == "SM42"
    assert captured["url"] == "https://twilio.test/2010-04-01/Accounts/AC123/Messages.json"
    assert captured["auth"] == "Basic " + base64.b64encode(b"AC123:secret").decode()
    assert captured["form"] == {"From": ["+15550001111"], "To": ["+15551234567"], "Body": ["hello"]}


@pytest.mark.asyncio
async def test_twilio_rejection_is_not_raised():
    def handler(request):
        return httpx.Response(400, json={"code": 21211, "error_code": 21211, "message": "Invalid 'To' Phone Number"})

    receipt = await _transport(handler).send("+1", "hello")
    assert receipt.accepted is False
    assert receipt.error == "Invalid 'To' Phone Number"


@pytest.mark.asyncio
async def test_twilio_timeout_and_network_errors():
    def timeout(request):
        raise httpx.ConnectTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    assert (await _transport(timeout).send("+15551234567", "x")).error == "sms_timeout"
    assert (await _transport(refused).send("+15551234567", "x")).error == "sms_unreachable"


@pytest.mark.asyncio
async def test_log_transport_always_accepts():
    receipt = await sms_transport.LogTransport().send("+15551234567", "hello")
    assert receipt.accepted is True
    assert receipt.sid.startswith("SM")


def test_mask_and_hash_number():
    assert sms_transport.mask_number("+15551234567") == "+1555123XXXX"
    assert sms_transport.hash_number("+15551234567") == sms_transport.hash_number("+15551234567")
    assert sms_transport.hash_number("+15551234567") != sms_transport.hash_number("+15551234568")


def test_build_transport_requires_twilio_credentials(monkeypatch):
    from matching_api.settings import settings

    monkeypatch.setattr(settings, "sms_backend", "twilio")
    monkeypatch.setattr(settings, "twilio_account_sid", None)
    with pytest.raises(RuntimeError):
        sms_transport.build_transport()

    monkeypatch.setattr(settings, "sms_backend", "log")
    assert isinstance(sms_transport.build_transport(), sms_transport.LogTransport)
