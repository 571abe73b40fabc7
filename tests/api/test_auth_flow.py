import pytest

from matching_api.domain.identity import sms
from matching_api.settings import settings


def _fixed_code(monkeypatch, code="123456"):
    monkeypatch.setattr(sms, "generate_otp", lambda: code)


@pytest.mark.asyncio
async def test_sign_in_then_reminder_is_gated(api_client, fake_redis, fake_db, sms_outbox, monkeypatch):
    _fixed_code(monkeypatch)

    resp = await api_client.post("/api/auth/send-code", json={"phoneNumber": "555-123-4567"})
    assert resp.status_code == 200
    body = resp.json()
    assert body == {"success": True, "message": "Verification code sent successfully!", "phone": "+15551234567"}
    assert await fake_redis.get("otp:phone:+15551234567") is not None

    resp = await api_client.post("/api/auth/verify-code", json={"phoneNumber": "5551234567", "code": "123456"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Phone verified successfully!"
    assert body["sessionToken"]
    user = body["user"]
    assert user["phone_number"] == "+15551234567"
    assert user["authenticated"] is True
    assert user["profile_completed"] is False
    assert user["id"] in fake_db.users

    resp = await api_client.post("/api/sms/reminder", json={"phoneNumber": "+15551234567"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["status"] == "skipped"
    # only the verification code went out
    assert len(sms_outbox.sent) == 1


@pytest.mark.asyncio
async def test_send_code_requires_phone(api_client):
    resp = await api_client.post("/api/auth/send-code", json={})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Phone number is required"
    assert body["reason"] == "phone_required"


@pytest.mark.asyncio
async def test_verify_requires_both_fields(api_client):
    resp = await api_client.post("/api/auth/verify-code", json={"phoneNumber": "5551234567"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Phone number and verification code are required"


@pytest.mark.asyncio
async def test_verify_failures_are_client_errors(api_client, monkeypatch):
    resp = await api_client.post("/api/auth/verify-code", json={"phoneNumber": "5551234567", "code": "123456"})
    assert resp.status_code == 400
    assert resp.json()["reason"] == "code_not_found"

    _fixed_code(monkeypatch)
    await api_client.post("/api/auth/send-code", json={"phoneNumber": "5551234567"})
    resp = await api_client.post("/api/auth/verify-code", json={"phoneNumber": "5551234567", "code": "000000"})
    assert resp.status_code == 400
    assert resp.json()["reason"] == "code_mismatch"


@pytest.mark.asyncio
async def test_send_code_rate_limited(api_client, monkeypatch):
    monkeypatch.setattr(settings, "otp_send_per_hour", 2)
    for _ in range(2):
        resp = await api_client.post("/api/auth/send-code", json={"phoneNumber": "5551234567"})
        assert resp.status_code == 200
    resp = await api_client.post("/api/auth/send-code", json={"phoneNumber": "5551234567"})
    assert resp.status_code == 429
    assert resp.json()["reason"] == "otp_send_rate"


@pytest.mark.asyncio
async def test_send_code_transport_failure(api_client, sms_outbox):
    sms_outbox.accept = False
    resp = await api_client.post("/api/auth/send-code", json={"phoneNumber": "5551234567"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["reason"] == "sms_rejected"
