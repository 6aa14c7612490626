from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from core.errors import auth_permission_denied
from core.response_envelope import document_response
from schemas.payment_schema import PaymentInitiateIn
from security.auth import verify_any_token
from security.principal import AuthPrincipal
from security.rate_limit import rate_limit_initiate
from services.payment_service import (
    get_payment_transaction,
    initiate_payment,
    process_webhook,
    retry_payment,
)

router = APIRouter(prefix="/gateways/{gateway}", tags=["Payments"])

PAYMENT_RESPONSE_EXAMPLE = {
    "transaction_id": "ISA-3f7c1d2e9a8b4c5d6e7f8091a2b3c4d5",
    "provider": "mpesa",
    "status": "pending",
    "amount": 150.0,
    "currency": "KES",
    "redirect_url": None,
    "reference_id": "ws_CO_191020261030001234",
    "metadata": {"has_keys": True},
}


@router.post("/initiate", dependencies=[Depends(rate_limit_initiate)])
@document_response(
    message="Payment initiated",
    success_example=PAYMENT_RESPONSE_EXAMPLE,
    response_codes={
        401: "Unauthorized",
        403: "Paying on behalf of another user",
        404: "Unknown gateway",
        422: "Invalid payment request",
        429: "Too many requests",
        502: "Payment provider error",
    },
)
async def initiate(
    gateway: str,
    payload: PaymentInitiateIn,
    principal: AuthPrincipal = Depends(verify_any_token),
):
    if not principal.can_act_for(payload.user_id):
        raise auth_permission_denied("POST:/v1/gateways/{gateway}/initiate")
    return await initiate_payment(gateway_name=gateway, request=payload.to_payment_request())


@router.get("/status/{transaction_id}")
@document_response(
    message="Payment status fetched",
    success_example=PAYMENT_RESPONSE_EXAMPLE,
    response_codes={401: "Unauthorized", 403: "Forbidden", 404: "Transaction not found"},
)
async def payment_status(
    gateway: str,
    transaction_id: str,
    principal: AuthPrincipal = Depends(verify_any_token),
):
    tx = await get_payment_transaction(gateway_name=gateway, transaction_id=transaction_id)
    if not principal.can_act_for(tx.user_id):
        raise auth_permission_denied("GET:/v1/gateways/{gateway}/status/{transaction_id}")
    return tx.to_payment_response()


@router.post("/retry/{transaction_id}")
@document_response(
    message="Payment retried",
    success_example=PAYMENT_RESPONSE_EXAMPLE,
    response_codes={
        401: "Unauthorized",
        403: "Forbidden",
        404: "Transaction not found",
        409: "Transaction is not in a failed state",
        502: "Payment provider error",
    },
)
async def retry(
    gateway: str,
    transaction_id: str,
    principal: AuthPrincipal = Depends(verify_any_token),
):
    tx = await get_payment_transaction(gateway_name=gateway, transaction_id=transaction_id)
    if not principal.can_act_for(tx.user_id):
        raise auth_permission_denied("POST:/v1/gateways/{gateway}/retry/{transaction_id}")
    return await retry_payment(gateway_name=gateway, transaction_id=transaction_id)


@router.post("/webhook/{provider}")
@document_response(
    message="Webhook processed",
    success_example={"processed": True, "transaction_id": PAYMENT_RESPONSE_EXAMPLE["transaction_id"], "status": "success"},
    response_codes={
        400: "Malformed webhook",
        401: "Invalid signature",
        404: "Unknown provider or transaction",
        409: "Transaction already settled",
    },
)
async def payment_webhook(gateway: str, provider: str, request: Request):
    """
    Receive provider callbacks for a gateway.

    Accepted `provider` path values:
    - `isa-pay`: `mpesa`, `airtel`, `dpo`
    - `myplug-pay`: `pesapal`
    """
    body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    return await process_webhook(gateway_name=gateway, provider_name=provider, body=body, headers=headers)
