from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PaymentProviderName(str, Enum):
    AIRTEL = "airtel"
    DPO = "dpo"
    MPESA = "mpesa"
    PESAPAL = "pesapal"


class PaymentMethod(str, Enum):
    MPESA = "mpesa"
    AIRTEL = "airtel"
    CARD = "card"
    BANK = "bank"
    CARD_BANK = "card_bank"
    PAYPAL = "paypal"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


@dataclass(frozen=True)
class CardDetails:
    card_number: str
    expiry_date: str
    cvv: str
    cardholder_name: str

    def masked(self) -> "CardDetails":
        digits = "".join(ch for ch in self.card_number if ch.isdigit())
        return CardDetails(
            card_number=f"{'*' * max(len(digits) - 4, 0)}{digits[-4:]}",
            expiry_date=self.expiry_date,
            cvv="",
            cardholder_name=self.cardholder_name,
        )


@dataclass(frozen=True)
class BankDetails:
    account_number: str
    bank_name: str
    account_holder_name: str


@dataclass(frozen=True)
class PaymentRequest:
    user_id: str
    amount: float
    currency: str
    method: str
    order_id: str | None = None
    description: str | None = None
    phone_number: str | None = None
    email: str | None = None
    callback_url: str | None = None
    card_details: CardDetails | None = None
    bank_details: BankDetails | None = None


@dataclass(frozen=True)
class PaymentResponse:
    transaction_id: str
    provider: PaymentProviderName
    status: PaymentStatus
    amount: float
    currency: str
    redirect_url: str | None = None
    reference_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookVerificationResult:
    status: PaymentStatus
    reference_id: str | None = None
    transaction_id: str | None = None
