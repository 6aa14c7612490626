from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AirtelConfig:
    base_url: str = "https://openapi.airtel.africa"
    client_id: str | None = None
    client_secret: str | None = None
    webhook_secret: str | None = None
    country: str = "KE"
    timeout_seconds: float = 15.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class DpoConfig:
    base_url: str = "https://secure.3gdirectpay.com/API/v6/"
    payment_page_url: str = "https://secure.3gdirectpay.com/payv2.php"
    company_token: str | None = None
    service_type: str | None = None
    webhook_secret: str | None = None
    timeout_seconds: float = 15.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.company_token and self.service_type)


@dataclass(frozen=True)
class MpesaConfig:
    base_url: str = "https://sandbox.safaricom.co.ke"
    consumer_key: str | None = None
    consumer_secret: str | None = None
    shortcode: str | None = None
    passkey: str | None = None
    callback_url: str | None = None
    webhook_secret: str | None = None
    timeout_seconds: float = 15.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret and self.passkey and self.shortcode)


@dataclass(frozen=True)
class PesapalConfig:
    base_url: str = "https://pay.pesapal.com/v3"
    consumer_key: str | None = None
    consumer_secret: str | None = None
    callback_url: str | None = None
    ipn_id: str | None = None
    webhook_secret: str | None = None
    country: str = "KE"
    timeout_seconds: float = 15.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret)
