from core.payments.errors import (
    PaymentError,
    ProviderTransportError,
    ValidationError,
)
from core.payments.gateway import PaymentGateway
from core.payments.manager import ISA_PAY, MYPLUG_PAY, PaymentManager
from core.payments.types import (
    BankDetails,
    CardDetails,
    PaymentMethod,
    PaymentProviderName,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookVerificationResult,
)

__all__ = [
    "BankDetails",
    "CardDetails",
    "ISA_PAY",
    "MYPLUG_PAY",
    "PaymentError",
    "PaymentGateway",
    "PaymentManager",
    "PaymentMethod",
    "PaymentProviderName",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentStatus",
    "ProviderTransportError",
    "ValidationError",
    "WebhookVerificationResult",
]
