from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.payments.types import BankDetails, CardDetails, PaymentRequest


class CardDetailsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_number: str = Field(alias="cardNumber", min_length=4, max_length=23)
    expiry_date: str = Field(alias="expiryDate", min_length=4, max_length=7)
    cvv: str = Field(min_length=0, max_length=4)
    cardholder_name: str = Field(alias="cardholderName", min_length=1)

    def to_domain(self) -> CardDetails:
        return CardDetails(
            card_number=self.card_number,
            expiry_date=self.expiry_date,
            cvv=self.cvv,
            cardholder_name=self.cardholder_name,
        )


class BankDetailsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_number: str = Field(alias="accountNumber", min_length=4)
    bank_name: str = Field(alias="bankName", min_length=1)
    account_holder_name: str = Field(alias="accountHolderName", min_length=1)

    def to_domain(self) -> BankDetails:
        return BankDetails(
            account_number=self.account_number,
            bank_name=self.bank_name,
            account_holder_name=self.account_holder_name,
        )


class PaymentInitiateIn(BaseModel):
    user_id: str = Field(min_length=1)
    amount: float = Field(gt=0, allow_inf_nan=False)
    currency: str = Field(pattern=r"^[A-Za-z]{3}$")
    method: str = Field(min_length=1)
    order_id: str | None = None
    description: str | None = None
    phone_number: str | None = None
    email: str | None = None
    callback_url: str | None = None
    card_details: CardDetailsIn | None = None
    bank_details: BankDetailsIn | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("method")
    @classmethod
    def normalize_method(cls, value: str) -> str:
        return value.strip().lower()

    def to_payment_request(self) -> PaymentRequest:
        return PaymentRequest(
            user_id=self.user_id,
            amount=self.amount,
            currency=self.currency,
            method=self.method,
            order_id=self.order_id,
            description=self.description,
            phone_number=self.phone_number,
            email=self.email,
            callback_url=self.callback_url,
            card_details=self.card_details.to_domain() if self.card_details else None,
            bank_details=self.bank_details.to_domain() if self.bank_details else None,
        )


def _mask(value: str) -> str:
    return f"{'*' * max(len(value) - 4, 0)}{value[-4:]}"


class PaymentTransactionCreate(BaseModel):
    transaction_id: str
    gateway: str
    user_id: str
    provider: str
    method: str
    status: str
    amount: float
    currency: str
    order_id: str | None = None
    description: str | None = None
    phone_number: str | None = None
    email: str | None = None
    callback_url: str | None = None
    card_details: dict[str, Any] | None = None
    bank_details: dict[str, Any] | None = None
    redirect_url: str | None = None
    reference_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    retry_of: str | None = None
    created_at: int
    updated_at: int

    @classmethod
    def sanitized_details(cls, request: PaymentRequest) -> dict[str, dict[str, Any] | None]:
        """Card and bank details as they may be stored: masked numbers, no CVV."""
        card = request.card_details.masked() if request.card_details else None
        bank = request.bank_details
        return {
            "card_details": {
                "card_number": card.card_number,
                "expiry_date": card.expiry_date,
                "cvv": "",
                "cardholder_name": card.cardholder_name,
            }
            if card
            else None,
            "bank_details": {
                "account_number": _mask(bank.account_number),
                "bank_name": bank.bank_name,
                "account_holder_name": bank.account_holder_name,
            }
            if bank
            else None,
        }


class PaymentTransactionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(alias="_id")
    gateway: str
    user_id: str
    provider: str
    method: str
    status: str
    amount: float
    currency: str
    order_id: str | None = None
    description: str | None = None
    phone_number: str | None = None
    email: str | None = None
    callback_url: str | None = None
    card_details: dict[str, Any] | None = None
    bank_details: dict[str, Any] | None = None
    redirect_url: str | None = None
    reference_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    retry_of: str | None = None
    created_at: int
    updated_at: int

    def to_payment_response(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "provider": self.provider,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "redirect_url": self.redirect_url,
            "reference_id": self.reference_id,
            "metadata": self.metadata,
        }

    def to_payment_request(self) -> PaymentRequest:
        return PaymentRequest(
            user_id=self.user_id,
            amount=self.amount,
            currency=self.currency,
            method=self.method,
            order_id=self.order_id,
            description=self.description,
            phone_number=self.phone_number,
            email=self.email,
            callback_url=self.callback_url,
            card_details=CardDetails(**self.card_details) if self.card_details else None,
            bank_details=BankDetails(**self.bank_details) if self.bank_details else None,
        )
