from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from core.payments.config import AirtelConfig
from core.payments.errors import ProviderTransportError, ValidationError
from core.payments.provider import PaymentProvider
from core.payments.transport import build_client, json_body, send
from core.payments.types import (
    PaymentProviderName,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookVerificationResult,
)
from core.payments.utils import (
    dig,
    first_present,
    generate_transaction_id,
    lookup_status,
    parse_webhook_body,
    webhook_signature_accepted,
)

logger = logging.getLogger(__name__)


class AirtelPaymentProvider(PaymentProvider):
    provider_name = PaymentProviderName.AIRTEL.value

    # "ts"/"tf" are Airtel's own transaction status codes.
    SUCCESS_STATUSES = frozenset({"success", "completed", "ts"})
    FAILED_STATUSES = frozenset({"failed", "rejected", "declined", "cancelled", "error", "tf"})

    def __init__(
        self,
        config: AirtelConfig,
        *,
        transaction_prefix: str = "TXN",
        signature_headers: tuple[str, ...] = ("x-isa-signature",),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transaction_prefix = transaction_prefix
        self._signature_headers = signature_headers
        self._transport = transport

    def build_request(self, payload: PaymentRequest, *, transaction_id: str) -> dict[str, Any]:
        if not payload.phone_number:
            raise ValidationError("phone_number", "phone_number is required for Airtel Money payments")

        country = self._config.country
        currency = payload.currency.upper()
        return {
            "reference": payload.order_id or transaction_id,
            "subscriber": {
                "country": country,
                "currency": currency,
                "msisdn": "".join(ch for ch in payload.phone_number if ch.isdigit()),
            },
            "transaction": {
                "amount": payload.amount,
                "country": country,
                "currency": currency,
                "id": transaction_id,
            },
        }

    def _response(
        self,
        payload: PaymentRequest,
        transaction_id: str,
        *,
        reference_id: str | None = None,
        metadata: dict[str, Any],
    ) -> PaymentResponse:
        return PaymentResponse(
            transaction_id=transaction_id,
            provider=PaymentProviderName.AIRTEL,
            status=PaymentStatus.PENDING,
            amount=payload.amount,
            currency=payload.currency.upper(),
            reference_id=reference_id,
            metadata=metadata,
        )

    async def _access_token(self, client: httpx.AsyncClient, transaction_id: str) -> str:
        response = await send(
            client,
            "POST",
            "/auth/oauth2/token",
            provider=self.provider_name,
            transaction_id=transaction_id,
            json={
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "grant_type": "client_credentials",
            },
        )
        data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)
        token = data.get("access_token")
        if not token:
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message="Airtel did not return an access token",
                status_code=response.status_code,
            )
        return str(token)

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        transaction_id = generate_transaction_id(self._transaction_prefix)
        if not self._config.has_credentials:
            logger.info("Airtel credentials absent, issuing stub transaction %s", transaction_id)
            return self._response(payload, transaction_id, metadata={"has_keys": False})

        body = self.build_request(payload, transaction_id=transaction_id)
        async with build_client(
            base_url=self._config.base_url,
            timeout_seconds=self._config.timeout_seconds,
            transport=self._transport,
        ) as client:
            token = await self._access_token(client, transaction_id)
            response = await send(
                client,
                "POST",
                "/merchant/v1/payments/",
                provider=self.provider_name,
                transaction_id=transaction_id,
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "X-Country": self._config.country,
                    "X-Currency": payload.currency.upper(),
                },
            )
            data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)

        if str(dig(data, "status", "status") or "").upper() != "SUCCESS":
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message=str(dig(data, "status", "message") or "Airtel Money payment was rejected"),
                status_code=response.status_code,
                details=data,
            )

        logger.info("Airtel payment %s accepted", transaction_id)
        return self._response(
            payload,
            transaction_id,
            reference_id=first_present(dig(data, "data", "transaction", "id")),
            metadata={"has_keys": True, "airtel_code": dig(data, "status", "code")},
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
        raw_status = first_present(
            payload.get("status"),
            dig(payload, "transaction", "status"),
            dig(payload, "transaction", "status_code"),
        )
        return WebhookVerificationResult(
            status=lookup_status(raw_status, success=self.SUCCESS_STATUSES, failed=self.FAILED_STATUSES),
            reference_id=first_present(
                payload.get("reference_id"),
                dig(payload, "transaction", "airtel_money_id"),
                dig(payload, "transaction", "id"),
            ),
            transaction_id=first_present(payload.get("transaction_id"), dig(payload, "transaction", "id")),
        )
