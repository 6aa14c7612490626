from __future__ import annotations

from threading import Lock

import httpx

from core.payments.airtel_provider import AirtelPaymentProvider
from core.payments.config import AirtelConfig, DpoConfig, MpesaConfig, PesapalConfig
from core.payments.dpo_provider import DpoPaymentProvider
from core.payments.gateway import DETAIL_FIELDS, PaymentGateway
from core.payments.mpesa_provider import MpesaPaymentProvider
from core.payments.pesapal_provider import PesapalPaymentProvider
from core.payments.types import PaymentMethod
from core.settings import Settings, get_settings

ISA_PAY = "isa-pay"
MYPLUG_PAY = "myplug-pay"


def build_gateways(
    *,
    airtel: AirtelConfig,
    dpo: DpoConfig,
    mpesa: MpesaConfig,
    pesapal: PesapalConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, PaymentGateway]:
    isa_headers = ("x-isa-signature",)
    isa_mpesa = MpesaPaymentProvider(mpesa, transaction_prefix="ISA", signature_headers=isa_headers, transport=transport)
    isa_airtel = AirtelPaymentProvider(airtel, transaction_prefix="ISA", signature_headers=isa_headers, transport=transport)
    isa_dpo = DpoPaymentProvider(dpo, transaction_prefix="ISA", signature_headers=isa_headers, transport=transport)

    isa_pay = PaymentGateway(
        name=ISA_PAY,
        routes={
            PaymentMethod.MPESA.value: isa_mpesa,
            PaymentMethod.AIRTEL.value: isa_airtel,
            PaymentMethod.CARD.value: isa_dpo,
            PaymentMethod.BANK.value: isa_dpo,
        },
        requirements={
            PaymentMethod.MPESA.value: ("phone_number",),
            PaymentMethod.AIRTEL.value: ("phone_number",),
            PaymentMethod.CARD.value: ("card_details",),
            PaymentMethod.BANK.value: ("bank_details",),
        },
    )

    pesapal_provider = PesapalPaymentProvider(
        pesapal,
        transaction_prefix="MYPLUG",
        signature_headers=("x-pesapal-signature", "x-myplug-signature"),
        transport=transport,
    )
    myplug_pay = PaymentGateway(
        name=MYPLUG_PAY,
        routes={
            method: pesapal_provider
            for method in (
                PaymentMethod.CARD_BANK.value,
                PaymentMethod.MPESA.value,
                PaymentMethod.AIRTEL.value,
                PaymentMethod.CARD.value,
                PaymentMethod.BANK.value,
            )
        },
        optional={
            method: DETAIL_FIELDS
            for method in (
                PaymentMethod.CARD_BANK.value,
                PaymentMethod.CARD.value,
                PaymentMethod.BANK.value,
            )
        },
        method_override=PaymentMethod.CARD_BANK.value,
    )

    return {ISA_PAY: isa_pay, MYPLUG_PAY: myplug_pay}


def build_gateways_from_settings(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, PaymentGateway]:
    timeout = settings.provider_timeout_seconds
    return build_gateways(
        airtel=AirtelConfig(
            base_url=settings.airtel_base_url,
            client_id=settings.airtel_client_id,
            client_secret=settings.airtel_client_secret,
            webhook_secret=settings.airtel_webhook_secret,
            country=settings.airtel_country,
            timeout_seconds=timeout,
        ),
        dpo=DpoConfig(
            base_url=settings.dpo_base_url,
            payment_page_url=settings.dpo_payment_page_url,
            company_token=settings.dpo_company_token,
            service_type=settings.dpo_service_type,
            webhook_secret=settings.dpo_webhook_secret,
            timeout_seconds=timeout,
        ),
        mpesa=MpesaConfig(
            base_url=settings.mpesa_base_url,
            consumer_key=settings.mpesa_consumer_key,
            consumer_secret=settings.mpesa_consumer_secret,
            shortcode=settings.mpesa_shortcode,
            passkey=settings.mpesa_passkey,
            callback_url=settings.mpesa_callback_url,
            webhook_secret=settings.mpesa_webhook_secret,
            timeout_seconds=timeout,
        ),
        pesapal=PesapalConfig(
            base_url=settings.pesapal_base_url,
            consumer_key=settings.pesapal_consumer_key,
            consumer_secret=settings.pesapal_consumer_secret,
            callback_url=settings.pesapal_callback_url,
            ipn_id=settings.pesapal_ipn_id,
            webhook_secret=settings.pesapal_webhook_secret,
            country=settings.pesapal_country,
            timeout_seconds=timeout,
        ),
        transport=transport,
    )


class PaymentManager:
    _instance: "PaymentManager | None" = None
    _lock = Lock()

    def __init__(self, gateways: dict[str, PaymentGateway]) -> None:
        self._gateways = gateways

    @classmethod
    def configure(cls, gateways: dict[str, PaymentGateway]) -> "PaymentManager":
        with cls._lock:
            cls._instance = cls(gateways=gateways)
            return cls._instance

    @classmethod
    def configure_from_settings(cls) -> "PaymentManager":
        return cls.configure(build_gateways_from_settings(get_settings()))

    @classmethod
    def get_instance(cls) -> "PaymentManager":
        if cls._instance is None:
            return cls.configure_from_settings()
        return cls._instance

    @property
    def gateway_names(self) -> tuple[str, ...]:
        return tuple(self._gateways)

    def get_gateway(self, name: str) -> PaymentGateway:
        key = name.lower()
        if key not in self._gateways:
            raise ValueError(f"Unsupported payment gateway '{name}'")
        return self._gateways[key]
