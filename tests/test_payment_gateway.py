from __future__ import annotations

from typing import Any, Mapping

import pytest

from core.payments.config import AirtelConfig, DpoConfig, MpesaConfig, PesapalConfig
from core.payments.errors import ValidationError
from core.payments.gateway import PaymentGateway
from core.payments.manager import ISA_PAY, MYPLUG_PAY, PaymentManager, build_gateways
from core.payments.types import (
    BankDetails,
    CardDetails,
    PaymentProviderName,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookVerificationResult,
)


class _RecordingProvider:
    def __init__(self, name: str) -> None:
        self.provider_name = name
        self.calls: list[PaymentRequest] = []

    def build_request(self, payload: PaymentRequest, *, transaction_id: str) -> dict[str, Any]:
        return {}

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        self.calls.append(payload)
        return PaymentResponse(
            transaction_id=f"TXN-{len(self.calls)}",
            provider=PaymentProviderName(self.provider_name),
            status=PaymentStatus.PENDING,
            amount=payload.amount,
            currency=payload.currency,
        )

    def verify(self, *, body: bytes, headers: Mapping[str, str]) -> WebhookVerificationResult | None:
        return WebhookVerificationResult(status=PaymentStatus.SUCCESS, transaction_id="TXN-1")


CARD = CardDetails(card_number="4111111111111111", expiry_date="12/29", cvv="123", cardholder_name="Jane Doe")
BANK = BankDetails(account_number="0123456789", bank_name="KCB", account_holder_name="Jane Doe")


def _request(**overrides) -> PaymentRequest:
    values = {"user_id": "user-1", "amount": 100.0, "currency": "KES", "method": "mpesa", "phone_number": "0712345678"}
    values.update(overrides)
    return PaymentRequest(**values)


def _stub_gateways() -> dict[str, PaymentGateway]:
    return build_gateways(airtel=AirtelConfig(), dpo=DpoConfig(), mpesa=MpesaConfig(), pesapal=PesapalConfig())


@pytest.mark.asyncio
async def test_unsupported_method_never_reaches_an_adapter():
    mpesa = _RecordingProvider("mpesa")
    gateway = PaymentGateway(name="isa-pay", routes={"mpesa": mpesa})

    with pytest.raises(ValidationError) as exc_info:
        await gateway.initiate(_request(method="paypal"))

    assert exc_info.value.field == "method"
    assert mpesa.calls == []


@pytest.mark.asyncio
async def test_required_field_missing_is_rejected_before_dispatch():
    mpesa = _RecordingProvider("mpesa")
    gateway = PaymentGateway(name="isa-pay", routes={"mpesa": mpesa}, requirements={"mpesa": ("phone_number",)})

    with pytest.raises(ValidationError) as exc_info:
        await gateway.initiate(_request(phone_number=None))

    assert exc_info.value.field == "phone_number"
    assert mpesa.calls == []


@pytest.mark.asyncio
async def test_method_override_is_applied_before_dispatch():
    pesapal = _RecordingProvider("pesapal")
    gateway = PaymentGateway(
        name="myplug-pay",
        routes={"mpesa": pesapal, "card_bank": pesapal},
        method_override="card_bank",
    )

    await gateway.initiate(_request(method="mpesa"))

    assert pesapal.calls[0].method == "card_bank"


@pytest.mark.parametrize(
    ("method", "overrides", "field"),
    [
        ("mpesa", {"phone_number": None}, "phone_number"),
        ("airtel", {"phone_number": ""}, "phone_number"),
        ("card", {"phone_number": None}, "card_details"),
        ("bank", {"phone_number": None}, "bank_details"),
        ("mpesa", {"card_details": CARD}, "card_details"),
        ("card", {"card_details": CARD, "bank_details": BANK}, "bank_details"),
        ("paypal", {}, "method"),
    ],
)
def test_isa_pay_validation(method: str, overrides: dict, field: str):
    gateway = _stub_gateways()[ISA_PAY]

    with pytest.raises(ValidationError) as exc_info:
        gateway.validate(_request(method=method, **overrides))

    assert exc_info.value.field == field


@pytest.mark.parametrize(
    ("method", "overrides", "provider"),
    [
        ("mpesa", {}, PaymentProviderName.MPESA),
        ("airtel", {}, PaymentProviderName.AIRTEL),
        ("card", {"card_details": CARD}, PaymentProviderName.DPO),
        ("bank", {"bank_details": BANK}, PaymentProviderName.DPO),
    ],
)
@pytest.mark.asyncio
async def test_isa_pay_routes_each_method_to_its_adapter(method, overrides, provider):
    gateway = _stub_gateways()[ISA_PAY]

    response = await gateway.initiate(_request(method=method, **overrides))

    assert response.provider is provider
    assert response.status is PaymentStatus.PENDING
    assert response.transaction_id.startswith("ISA-")


@pytest.mark.parametrize("method", ["card_bank", "mpesa", "airtel", "card", "bank"])
@pytest.mark.asyncio
async def test_myplug_pay_sends_everything_to_pesapal(method: str):
    gateway = _stub_gateways()[MYPLUG_PAY]

    response = await gateway.initiate(_request(method=method))

    assert response.provider is PaymentProviderName.PESAPAL
    assert response.transaction_id.startswith("MYPLUG-")


@pytest.mark.parametrize("method", ["card_bank", "card", "bank"])
@pytest.mark.asyncio
async def test_myplug_pay_accepts_optional_card_and_bank_details(method: str):
    gateway = _stub_gateways()[MYPLUG_PAY]

    response = await gateway.initiate(_request(method=method, card_details=CARD, bank_details=BANK))

    assert response.provider is PaymentProviderName.PESAPAL


def test_myplug_pay_rejects_card_details_for_mobile_money():
    with pytest.raises(ValidationError) as exc_info:
        _stub_gateways()[MYPLUG_PAY].validate(_request(method="mpesa", card_details=CARD))

    assert exc_info.value.field == "card_details"


def test_myplug_pay_rejects_paypal():
    with pytest.raises(ValidationError):
        _stub_gateways()[MYPLUG_PAY].validate(_request(method="paypal"))


@pytest.mark.asyncio
async def test_each_initiation_gets_a_distinct_transaction_id():
    gateway = _stub_gateways()[ISA_PAY]

    first = await gateway.initiate(_request())
    second = await gateway.initiate(_request())

    assert first.transaction_id != second.transaction_id


def test_verify_webhook_dispatches_by_provider_name():
    gateway = _stub_gateways()[ISA_PAY]

    assert set(gateway.provider_names) == {"mpesa", "airtel", "dpo"}
    with pytest.raises(ValidationError) as exc_info:
        gateway.verify_webhook(provider_name="pesapal", body=b"{}", headers={})
    assert exc_info.value.field == "provider"

    result = gateway.verify_webhook(provider_name="DPO", body=b'{"CompanyRef": "ISA-1", "status": "paid"}', headers={})
    assert result is not None
    assert result.transaction_id == "ISA-1"


def test_manager_resolves_gateways_case_insensitively():
    manager = PaymentManager(_stub_gateways())

    assert manager.gateway_names == (ISA_PAY, MYPLUG_PAY)
    assert manager.get_gateway("ISA-PAY").name == ISA_PAY
    with pytest.raises(ValueError):
        manager.get_gateway("stripe-pay")


def test_manager_configure_replaces_singleton():
    gateways = _stub_gateways()
    previous = PaymentManager._instance
    try:
        configured = PaymentManager.configure(gateways)
        assert PaymentManager.get_instance() is configured
    finally:
        PaymentManager._instance = previous
