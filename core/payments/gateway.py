from __future__ import annotations

import dataclasses
import logging
from typing import Mapping

from core.payments.errors import ValidationError
from core.payments.provider import PaymentProvider
from core.payments.types import PaymentRequest, PaymentResponse, WebhookVerificationResult

logger = logging.getLogger(__name__)

DETAIL_FIELDS = ("card_details", "bank_details")


class PaymentGateway:
    """Dispatch a normalized payment request to the adapter registered for its method.

    ``routes`` maps each accepted method to an adapter; ``requirements`` lists the
    request fields a method cannot do without and ``optional`` the detail fields it
    accepts without requiring them. ``card_details``/``bank_details`` sent for any
    other method are rejected. When ``method_override`` is set the
    adapter sees that method instead of the caller's.
    """

    def __init__(
        self,
        *,
        name: str,
        routes: Mapping[str, PaymentProvider],
        requirements: Mapping[str, tuple[str, ...]] | None = None,
        optional: Mapping[str, tuple[str, ...]] | None = None,
        method_override: str | None = None,
    ) -> None:
        self.name = name
        self._routes = dict(routes)
        self._requirements = dict(requirements or {})
        self._optional = dict(optional or {})
        self._method_override = method_override
        self._providers = {provider.provider_name: provider for provider in self._routes.values()}

    @property
    def methods(self) -> tuple[str, ...]:
        return tuple(self._routes)

    @property
    def provider_names(self) -> tuple[str, ...]:
        return tuple(self._providers)

    def resolve(self, method: str) -> PaymentProvider:
        provider = self._routes.get(method)
        if provider is None:
            raise ValidationError(
                "method",
                f"Unsupported payment method '{method}'. Expected one of: {', '.join(self.methods)}",
            )
        return provider

    def validate(self, request: PaymentRequest) -> PaymentProvider:
        provider = self.resolve(request.method)
        required = self._requirements.get(request.method, ())

        for field_name in required:
            if not getattr(request, field_name):
                raise ValidationError(field_name, f"{field_name} is required for method '{request.method}'")

        accepted = (*required, *self._optional.get(request.method, ()))
        for field_name in DETAIL_FIELDS:
            if getattr(request, field_name) is not None and field_name not in accepted:
                raise ValidationError(field_name, f"{field_name} is not accepted for method '{request.method}'")

        return provider

    async def initiate(self, request: PaymentRequest) -> PaymentResponse:
        provider = self.validate(request)
        if self._method_override and request.method != self._method_override:
            request = dataclasses.replace(request, method=self._method_override)

        logger.info(
            "Gateway %s dispatching %s payment to %s",
            self.name,
            request.method,
            provider.provider_name,
        )
        return await provider.initiate(request)

    def get_provider(self, provider_name: str) -> PaymentProvider:
        provider = self._providers.get(provider_name.lower())
        if provider is None:
            raise ValidationError(
                "provider",
                f"Unknown provider '{provider_name}' for gateway {self.name}",
            )
        return provider

    def verify_webhook(
        self,
        *,
        provider_name: str,
        body: bytes,
        headers: Mapping[str, str],
    ) -> WebhookVerificationResult | None:
        return self.get_provider(provider_name).verify(body=body, headers=headers)
