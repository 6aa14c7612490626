from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

import httpx

from core.payments.config import MpesaConfig
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

# Daraja expects timestamps in East Africa Time.
DARAJA_TIMEZONE = timezone(timedelta(hours=3), "EAT")


def daraja_timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(DARAJA_TIMEZONE)).strftime("%Y%m%d%H%M%S")


def normalize_msisdn(phone_number: str) -> str:
    digits = "".join(ch for ch in phone_number if ch.isdigit())
    if digits.startswith("0"):
        return f"254{digits[1:]}"
    return digits


def map_mpesa_result(result_code: Any, fallback_status: Any = None) -> PaymentStatus:
    if result_code is None or result_code == "":
        if fallback_status is not None:
            return lookup_status(fallback_status)
        return PaymentStatus.PENDING
    if str(result_code).strip() == "0":
        return PaymentStatus.SUCCESS
    return PaymentStatus.FAILED


class MpesaPaymentProvider(PaymentProvider):
    provider_name = PaymentProviderName.MPESA.value

    def __init__(
        self,
        config: MpesaConfig,
        *,
        transaction_prefix: str = "TXN",
        signature_headers: tuple[str, ...] = ("x-isa-signature",),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transaction_prefix = transaction_prefix
        self._signature_headers = signature_headers
        self._transport = transport

    def _password(self, timestamp: str) -> str:
        raw = f"{self._config.shortcode}{self._config.passkey}{timestamp}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def build_request(
        self,
        payload: PaymentRequest,
        *,
        transaction_id: str,
        timestamp: str | None = None,
    ) -> dict[str, Any]:
        if not payload.phone_number:
            raise ValidationError("phone_number", "phone_number is required for M-Pesa payments")

        timestamp = timestamp or daraja_timestamp()
        msisdn = normalize_msisdn(payload.phone_number)
        amount = int(Decimal(str(payload.amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if amount < 1:
            raise ValidationError("amount", "M-Pesa payments must be at least 1 after rounding to whole units")
        return {
            "BusinessShortCode": self._config.shortcode,
            "Password": self._password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": msisdn,
            "PartyB": self._config.shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": payload.callback_url or self._config.callback_url,
            "AccountReference": (payload.order_id or transaction_id)[:12],
            "TransactionDesc": (payload.description or "Payment")[:13],
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
            provider=PaymentProviderName.MPESA,
            status=PaymentStatus.PENDING,
            amount=payload.amount,
            currency=payload.currency.upper(),
            reference_id=reference_id,
            metadata=metadata,
        )

    async def _access_token(self, client: httpx.AsyncClient, transaction_id: str) -> str:
        response = await send(
            client,
            "GET",
            "/oauth/v1/generate",
            provider=self.provider_name,
            transaction_id=transaction_id,
            params={"grant_type": "client_credentials"},
            auth=(self._config.consumer_key or "", self._config.consumer_secret or ""),
        )
        data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)
        token = data.get("access_token")
        if not token:
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message="M-Pesa did not return an access token",
                status_code=response.status_code,
            )
        return str(token)

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        transaction_id = generate_transaction_id(self._transaction_prefix)
        metadata: dict[str, Any] = {
            "shortcode": self._config.shortcode,
            "has_keys": self._config.has_credentials,
        }
        if not self._config.has_credentials:
            logger.info("M-Pesa credentials absent, issuing stub transaction %s", transaction_id)
            return self._response(payload, transaction_id, metadata=metadata)

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
                "/mpesa/stkpush/v1/processrequest",
                provider=self.provider_name,
                transaction_id=transaction_id,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            data = json_body(response, provider=self.provider_name, transaction_id=transaction_id)

        if str(data.get("ResponseCode")) != "0":
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message=str(data.get("ResponseDescription") or "M-Pesa STK push was rejected"),
                status_code=response.status_code,
                details=data,
            )

        logger.info("M-Pesa STK push sent for %s", transaction_id)
        metadata["merchant_request_id"] = data.get("MerchantRequestID")
        metadata["customer_message"] = data.get("CustomerMessage")
        return self._response(
            payload,
            transaction_id,
            reference_id=first_present(data.get("CheckoutRequestID")),
            metadata=metadata,
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
        callback = dig(payload, "Body", "stkCallback") or {}
        return WebhookVerificationResult(
            status=map_mpesa_result(dig(callback, "ResultCode"), payload.get("status")),
            reference_id=first_present(dig(callback, "CheckoutRequestID"), payload.get("reference_id")),
            transaction_id=first_present(payload.get("transaction_id"), dig(callback, "MerchantRequestID")),
        )
