from __future__ import annotations

from typing import Any, Mapping, Protocol

from core.payments.types import PaymentRequest, PaymentResponse, WebhookVerificationResult


class PaymentProvider(Protocol):
    provider_name: str

    def build_request(self, payload: PaymentRequest, *, transaction_id: str) -> dict[str, Any]:
        ...

    async def initiate(self, payload: PaymentRequest) -> PaymentResponse:
        ...

    def verify(self, *, body: bytes, headers: Mapping[str, str]) -> WebhookVerificationResult | None:
        ...
