from __future__ import annotations

from typing import Any


class PaymentError(Exception):
    """Base class for failures raised inside the payment core."""


class ValidationError(PaymentError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class ProviderTransportError(PaymentError):
    """The provider call did not produce a usable answer.

    Raised for network failures, non-2xx responses, unparseable bodies and explicit
    provider rejections. ``transaction_id`` is the locally generated id of the failed
    attempt so the caller can record it and offer a retry.
    """

    def __init__(
        self,
        *,
        provider: str,
        transaction_id: str,
        message: str,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.transaction_id = transaction_id
        self.message = message
        self.status_code = status_code
        self.details = details
