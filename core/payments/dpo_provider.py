from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Any, Mapping

import httpx

from core.payments.config import DpoConfig
from core.payments.errors import ProviderTransportError
from core.payments.provider import PaymentProvider
from core.payments.transport import build_client, send
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

_DEFAULT_PAYMENT = {
    PaymentMethod.CARD.value: "CC",
    PaymentMethod.BANK.value: "BT",
    PaymentMethod.MPESA.value: "MO",
    PaymentMethod.AIRTEL.value: "MO",
}
_DPO_OK = "000"


def map_dpo_status(raw_status: Any) -> PaymentStatus:
    value = str(raw_status or "").strip().lower()
    if "success" in value or value in {"paid", "approved"}:
        return PaymentStatus.SUCCESS
    if "fail" in value or value in {"declined", "error"}:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def _split_name(full_name: str | None) -> tuple[str | None, str | None]:
    parts = (full_name or "").split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def _append_xml(parent: ET.Element, values: Mapping[str, Any]) -> None:
    for key, value in values.items():
        if value is None:
            continue
        child = ET.SubElement(parent, key)
        if isinstance(value, Mapping):
            _append_xml(child, value)
        else:
            child.text = str(value)


def encode_api3g(body: Mapping[str, Any]) -> bytes:
    root = ET.Element("API3G")
    _append_xml(root, body)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


class DpoPaymentProvider(PaymentProvider):
    provider_name = PaymentProviderName.DPO.value

    def __init__(
        self,
        config: DpoConfig,
        *,
        transaction_prefix: str = "TXN",
        signature_headers: tuple[str, ...] = ("x-isa-signature",),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transaction_prefix = transaction_prefix
        self._signature_headers = signature_headers
        self._transport = transport

    def build_request(
        self,
        payload: PaymentRequest,
        *,
        transaction_id: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        holder_name = None
        if payload.card_details is not None:
            holder_name = payload.card_details.cardholder_name
        elif payload.bank_details is not None:
            holder_name = payload.bank_details.account_holder_name
        first_name, last_name = _split_name(holder_name)
        service_date = (now or datetime.now(timezone.utc)).strftime("%Y/%m/%d %H:%M")

        return {
            "CompanyToken": self._config.company_token,
            "Request": "createToken",
            "Transaction": {
                "PaymentAmount": f"{payload.amount:.2f}",
                "PaymentCurrency": payload.currency.upper(),
                "CompanyRef": transaction_id,
                "CompanyRefUnique": "1",
                "RedirectURL": payload.callback_url,
                "DefaultPayment": _DEFAULT_PAYMENT.get(payload.method),
                "customerFirstName": first_name,
                "customerLastName": last_name,
                "customerEmail": payload.email,
                "customerPhone": payload.phone_number,
            },
            "Services": {
                "Service": {
                    "ServiceType": self._config.service_type,
                    "ServiceDescription": payload.description or f"Payment for order {payload.order_id or transaction_id}",
                    "ServiceDate": service_date,
                }
            },
        }

    def _response(
        self,
        payload: PaymentRequest,
        transaction_id: str,
        *,
        redirect_url: str,
        reference_id: str | None = None,
        metadata: dict[str, Any],
    ) -> PaymentResponse:
        return PaymentResponse(
            transaction_id=transaction_id,
            provider=PaymentProviderName.DPO,
            status=PaymentStatus.PENDING,
            amount=payload.amount,
            currency=payload.currency.upper(),
            redirect_url=redirect_url,
            reference_id=reference_id,
            metadata=metadata,
        )

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        transaction_id = generate_transaction_id(self._transaction_prefix)
        metadata = {
            "service_type": self._config.service_type,
            "company_token": bool(self._config.company_token),
            "has_keys": self._config.has_credentials,
        }
        if not self._config.has_credentials:
            logger.info("DPO credentials absent, issuing stub transaction %s", transaction_id)
            return self._response(
                payload,
                transaction_id,
                redirect_url=f"{self._config.base_url.rstrip('/')}/pay/{transaction_id}",
                metadata=metadata,
            )

        request_xml = encode_api3g(self.build_request(payload, transaction_id=transaction_id))
        async with build_client(
            base_url=self._config.base_url,
            timeout_seconds=self._config.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await send(
                client,
                "POST",
                "",
                provider=self.provider_name,
                transaction_id=transaction_id,
                content=request_xml,
                headers={"Content-Type": "application/xml"},
            )

        try:
            document = ET.fromstring(response.content)
        except ET.ParseError as err:
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message="DPO returned invalid XML",
                status_code=response.status_code,
                details=response.text[:500],
            ) from err

        result = document.findtext("Result")
        token = document.findtext("TransToken")
        if result != _DPO_OK or not token:
            raise ProviderTransportError(
                provider=self.provider_name,
                transaction_id=transaction_id,
                message=document.findtext("ResultExplanation") or "DPO token creation was rejected",
                status_code=response.status_code,
                details={"result": result},
            )

        logger.info("DPO token created for %s", transaction_id)
        metadata["trans_ref"] = document.findtext("TransRef")
        return self._response(
            payload,
            transaction_id,
            redirect_url=f"{self._config.payment_page_url}?ID={token}",
            reference_id=token,
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
        return WebhookVerificationResult(
            status=map_dpo_status(first_present(payload.get("status"), payload.get("TransactionStatus"))),
            reference_id=first_present(payload.get("reference_id"), payload.get("TransactionToken")),
            transaction_id=first_present(
                payload.get("transaction_id"),
                payload.get("CompanyRef"),
                payload.get("TransactionID"),
            ),
        )
