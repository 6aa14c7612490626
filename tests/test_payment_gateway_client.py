from __future__ import annotations

import json

import httpx
import pytest

from clients import PaymentClientError, PaymentGatewayClient, isa_pay_client, pesapal_pay_client


def _envelope(data: dict) -> dict:
    return {"success": True, "message": "ok", "data": data}


@pytest.mark.asyncio
async def test_initiate_posts_to_gateway_with_bearer_token():
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_envelope({"transaction_id": "ISA-1", "status": "pending"}))

    client = isa_pay_client("https://api.example.com/", lambda: "tok-1", transport=httpx.MockTransport(_handler))

    data = await client.initiate(user_id="user-1", amount=100, currency="KES", method="mpesa", order_id=None)

    assert data == {"transaction_id": "ISA-1", "status": "pending"}
    assert seen[0].url == "https://api.example.com/v1/gateways/isa-pay/initiate"
    assert seen[0].headers["Authorization"] == "Bearer tok-1"
    assert json.loads(seen[0].content) == {"user_id": "user-1", "amount": 100, "currency": "KES", "method": "mpesa"}


@pytest.mark.asyncio
async def test_pesapal_client_forces_card_bank_and_supports_async_token():
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_envelope({"transaction_id": "MYPLUG-1"}))

    async def _token() -> str:
        return "tok-async"

    client = pesapal_pay_client("https://api.example.com", _token, transport=httpx.MockTransport(_handler))

    await client.initiate(user_id="user-1", amount=100, currency="KES", method="mpesa")

    assert seen[0].url.path == "/v1/gateways/myplug-pay/initiate"
    assert json.loads(seen[0].content)["method"] == "card_bank"
    assert seen[0].headers["Authorization"] == "Bearer tok-async"


@pytest.mark.asyncio
async def test_missing_token_sends_no_authorization_header():
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_envelope({"status": "pending"}))

    client = PaymentGatewayClient("https://api.example.com", "isa-pay", lambda: None, transport=httpx.MockTransport(_handler))

    await client.get_status("ISA-1")

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/v1/gateways/isa-pay/status/ISA-1"
    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_error_response_raises_with_server_message():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={
                "success": False,
                "message": "Only failed payments can be retried",
                "error": "Only failed payments can be retried",
                "data": {"code": "PAYMENT_STATE_CONFLICT", "details": None},
            },
        )

    client = isa_pay_client("https://api.example.com", lambda: "tok", transport=httpx.MockTransport(_handler))

    with pytest.raises(PaymentClientError) as exc_info:
        await client.retry("ISA-1")

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "Only failed payments can be retried"


@pytest.mark.asyncio
async def test_error_without_json_body_uses_fallback_message():
    client = isa_pay_client(
        "https://api.example.com",
        lambda: "tok",
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway")),
    )

    with pytest.raises(PaymentClientError) as exc_info:
        await client.get_status("ISA-1")

    assert str(exc_info.value) == "Payment status failed: 502"
