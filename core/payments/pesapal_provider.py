from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from core.payments.config import PesapalConfig
from core.payments.errors import ProviderTransportError
from core.payments.provider import PaymentProvider
from core.payments.transport import build_client, json_body, send
from core.payments.types import (
    PaymentMethod,
    PaymentProviderName,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookVerificationResult,
)
from core.payments.utils import (
    first_present,
    generate_transaction_id,
    parse_webhook_body,
    webhook_signature_accepted,
)

logger = logging.getLogger(__name__)

# Pesapal status codes: 0 invalid, 1 completed, 2 failed, 3 reversed.
_PESAPAL_SUCCESS = frozenset({"1", "completed"})
_PESAPAL_FAILED = frozenset({"0", "invalid", "2", "failed", "3", "reversed"})


def map_pesapal_status(raw_status: Any) -> PaymentStatus:
    value = str(raw_status if raw_status is not None else "").strip().lower()
    if value in _PESAPAL_SUCCESS:
        return PaymentStatus.SUCCESS
    if value in _PESAPAL_FAILED:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


class PesapalPaymentProvider(PaymentProvider):
    """Hosted-checkout adapter; Pesapal collects card, bank and wallet details itself."""

    provider_name = PaymentProviderName.PESAPAL.value
    outbound_method = PaymentMethod.CARD_BANK.value

    def __init__(
        self,
        config: PesapalConfig,
        *,
        transaction_prefix: str = "TXN",
        signature_headers: tuple[str, ...] = ("x-pesapal-signature", "x-myplug-signature"),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transaction_prefix = transaction_prefix
        self._signature_headers = signature_headers
        self._transport = transport

    def build_request(self, payload: PaymentRequest, *, transaction_id: str) -> dict[str, Any]:
        return {
            "id": transaction_id,
            "currency": payload.currency.upper(),
            "amount": payload.amount,
            "description": payload.description or f"Payment for order {payload.order_id or transaction_id}",
            "callback_url": payload.callback_url or self._config.callback_url,
            "notification_id": self._config.ipn_id,
            "method": self.outbound_method,
            "billing_address": {
                "email_address": payload.email or "",
                "phone_number": payload.phone_number or "",
                "country_code": self._config.country,
                "first_name": "",
                "middle_name": "",
                "last_name": "",
                "line_1": "",
                "line_2": "",
                "city": "",
                "state": "",
                "postal_code": "",
                "zip_code": "",
            },
        }

    async def _access_token(self, client: httpx.AsyncClient, transaction_id: str) -> str:
        response = await send(
            client,
            "POST",
            "/api/Auth/RequestToken",
            provider=self.provider_name,
            transaction_id=transaction_id,
            json={},
            auth=(self._config.consumer_key or "", self._config.consumer_secret or ""),
            headers={"Accept": "application/json"},
        )
        data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)
        token = data.get("token")
        if not token:
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message="Pesapal did not return an access token",
                status_code=response.status_code,
                details=data.get("error"),
            )
        return str(token)

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        transaction_id = generate_transaction_id(self._transaction_prefix)
        if not self._config.has_credentials:
            logger.info("Pesapal credentials absent, issuing stub transaction %s", transaction_id)
            return PaymentResponse(
                transaction_id=transaction_id,
                provider=PaymentProviderName.PESAPAL,
                status=PaymentStatus.PENDING,
                amount=payload.amount,
                currency=payload.currency.upper(),
                metadata={"has_keys": False},
            )

        order = self.build_request(payload, transaction_id=transaction_id)
        async with build_client(
            base_url=self._config.base_url,
            timeout_seconds=self._config.timeout_seconds,
            transport=self._transport,
        ) as client:
            token = await self._access_token(client, transaction_id)
            response = await send(
                client,
                "POST",
                "/api/Transactions/SubmitOrderRequest",
                provider=self.provider_name,
                transaction_id=transaction_id,
                json=order,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
            data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)

        redirect_url = first_present(data.get("redirect_url"), data.get("redirectUrl"))
        if not redirect_url:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message=str(error.get("message") or data.get("message") or "Pesapal order submission failed"),
                status_code=response.status_code,
                details=data,
            )

        logger.info("Pesapal order submitted for %s", transaction_id)
        return PaymentResponse(
            transaction_id=transaction_id,
            provider=PaymentProviderName.PESAPAL,
            status=PaymentStatus.PENDING,
            amount=payload.amount,
            currency=payload.currency.upper(),
            redirect_url=redirect_url,
            reference_id=first_present(data.get("order_tracking_id")),
            metadata={
                "order_tracking_id": data.get("order_tracking_id"),
                "merchant_reference": data.get("merchant_reference"),
                "has_keys": True,
            },
        )

    def verify(self, *, body: bytes, headers: Mapping[str, str]) -> WebhookVerificationResult | None:
        if not webhook_signature_accepted(
            provider=self.provider_name,
            secret=self._config.webhook_secret,
            body=body,
            headers=headers,
            header_names=self._signature_headers,
        ):
            return None

        payload = parse_webhook_body(body)
        raw_status = first_present(payload.get("status_code"), payload.get("StatusCode"), payload.get("status"))
        return WebhookVerificationResult(
            status=map_pesapal_status(raw_status),
            reference_id=first_present(
                payload.get("order_tracking_id"),
                payload.get("OrderTrackingId"),
                payload.get("reference_id"),
            ),
            transaction_id=first_present(
                payload.get("order_merchant_reference"),
                payload.get("OrderMerchantReference"),
                payload.get("transaction_id"),
                payload.get("id"),
            ),
        )
