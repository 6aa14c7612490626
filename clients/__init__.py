from clients.payment_gateway import (
    PaymentClientError,
    PaymentGatewayClient,
    isa_pay_client,
    pesapal_pay_client,
)

__all__ = [
    "PaymentClientError",
    "PaymentGatewayClient",
    "isa_pay_client",
    "pesapal_pay_client",
]
