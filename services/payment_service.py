from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from core.errors import AppException, ErrorCode, resource_not_found, validation_failed
from core.payments import (
    PaymentGateway,
    PaymentManager,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    ProviderTransportError,
    ValidationError,
)
from repositories.order_repo import mark_order_paid
from repositories.payment_repo import (
    create_payment_transaction,
    get_payment_transaction_by_id,
    get_payment_transaction_by_reference,
    record_reference_id,
    settle_payment_transaction,
)
from schemas.payment_schema import PaymentTransactionCreate, PaymentTransactionOut

logger = logging.getLogger(__name__)


def _epoch() -> int:
    return int(time.time())


def _get_payment_manager() -> PaymentManager:
    try:
        return PaymentManager.get_instance()
    except RuntimeError as err:
        raise AppException(
            status_code=503,
            code=ErrorCode.PAYMENT_PROVIDER_ERROR,
            message="Payment providers are not configured",
            details=str(err),
        ) from err


def _get_gateway(gateway_name: str) -> PaymentGateway:
    try:
        return _get_payment_manager().get_gateway(gateway_name)
    except ValueError as err:
        raise resource_not_found("PaymentGateway", gateway_name) from err


def _transaction_record(
    *,
    gateway: PaymentGateway,
    request: PaymentRequest,
    transaction_id: str,
    provider: str,
    status: PaymentStatus,
    redirect_url: str | None = None,
    reference_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    retry_of: str | None = None,
) -> PaymentTransactionCreate:
    now = _epoch()
    return PaymentTransactionCreate(
        transaction_id=transaction_id,
        gateway=gateway.name,
        user_id=request.user_id,
        provider=provider,
        method=request.method,
        status=status.value,
        amount=request.amount,
        currency=request.currency.upper(),
        order_id=request.order_id,
        description=request.description,
        phone_number=request.phone_number,
        email=request.email,
        callback_url=request.callback_url,
        redirect_url=redirect_url,
        reference_id=reference_id,
        metadata=metadata or {},
        retry_of=retry_of,
        created_at=now,
        updated_at=now,
        **PaymentTransactionCreate.sanitized_details(request),
    )


async def initiate_payment(
    *,
    gateway_name: str,
    request: PaymentRequest,
    retry_of: str | None = None,
) -> dict[str, Any]:
    gateway = _get_gateway(gateway_name)

    try:
        response: PaymentResponse = await gateway.initiate(request)
    except ValidationError as err:
        raise validation_failed(err.field, err.message) from err
    except ProviderTransportError as err:
        logger.warning(
            "Payment %s via %s/%s failed: %s",
            err.transaction_id,
            gateway.name,
            err.provider,
            err.message,
        )
        await create_payment_transaction(
            _transaction_record(
                gateway=gateway,
                request=request,
                transaction_id=err.transaction_id,
                provider=err.provider,
                status=PaymentStatus.FAILED,
                metadata={"error": err.message, "provider_status_code": err.status_code},
                retry_of=retry_of,
            )
        )
        raise AppException(
            status_code=502,
            code=ErrorCode.PAYMENT_PROVIDER_ERROR,
            message=f"Payment provider {err.provider} could not process the request",
            details={"transaction_id": err.transaction_id, "provider": err.provider, "reason": err.message},
        ) from err

    tx = await create_payment_transaction(
        _transaction_record(
            gateway=gateway,
            request=request,
            transaction_id=response.transaction_id,
            provider=response.provider.value,
            status=response.status,
            redirect_url=response.redirect_url,
            reference_id=response.reference_id,
            metadata=response.metadata,
            retry_of=retry_of,
        )
    )
    logger.info("Payment %s created via %s/%s", tx.transaction_id, gateway.name, tx.provider)
    return tx.to_payment_response()


async def get_payment_transaction(*, gateway_name: str, transaction_id: str) -> PaymentTransactionOut:
    gateway = _get_gateway(gateway_name)
    tx = await get_payment_transaction_by_id(transaction_id)
    if tx is None or tx.gateway != gateway.name:
        raise resource_not_found("PaymentTransaction", transaction_id)
    return tx


async def get_payment_status(*, gateway_name: str, transaction_id: str) -> dict[str, Any]:
    tx = await get_payment_transaction(gateway_name=gateway_name, transaction_id=transaction_id)
    return tx.to_payment_response()


async def retry_payment(*, gateway_name: str, transaction_id: str) -> dict[str, Any]:
    tx = await get_payment_transaction(gateway_name=gateway_name, transaction_id=transaction_id)
    if tx.status != PaymentStatus.FAILED.value:
        raise AppException(
            status_code=409,
            code=ErrorCode.PAYMENT_STATE_CONFLICT,
            message="Only failed payments can be retried",
            details={"transaction_id": transaction_id, "status": tx.status},
        )
    logger.info("Retrying payment %s", transaction_id)
    return await initiate_payment(
        gateway_name=gateway_name,
        request=tx.to_payment_request(),
        retry_of=transaction_id,
    )


async def _find_webhook_transaction(
    transaction_id: str | None,
    reference_id: str | None,
) -> PaymentTransactionOut | None:
    if transaction_id:
        tx = await get_payment_transaction_by_id(transaction_id)
        if tx is not None:
            return tx
    if reference_id:
        return await get_payment_transaction_by_reference(reference_id)
    return None


async def process_webhook(
    *,
    gateway_name: str,
    provider_name: str,
    body: bytes,
    headers: Mapping[str, str],
) -> dict[str, Any]:
    gateway = _get_gateway(gateway_name)
    try:
        result = gateway.verify_webhook(provider_name=provider_name, body=body, headers=headers)
    except ValidationError as err:
        if err.field == "provider":
            raise resource_not_found("PaymentProvider", provider_name) from err
        raise AppException(
            status_code=400,
            code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
            message=err.message,
            details={"field": err.field},
        ) from err

    if result is None:
        raise AppException(
            status_code=401,
            code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
            message="Invalid webhook signature",
            details={"provider": provider_name},
        )

    if not result.transaction_id and not result.reference_id:
        raise AppException(
            status_code=400,
            code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
            message="Webhook missing transaction reference",
            details={"provider": provider_name},
        )

    tx = await _find_webhook_transaction(result.transaction_id, result.reference_id)
    if tx is None or tx.gateway != gateway.name:
        raise resource_not_found("PaymentTransaction", result.transaction_id or result.reference_id)

    if not result.status.is_terminal:
        if result.reference_id and result.reference_id != tx.reference_id:
            await record_reference_id(tx.transaction_id, result.reference_id)
        return {
            "processed": True,
            "transaction_id": tx.transaction_id,
            "status": tx.status,
        }

    settled = await settle_payment_transaction(tx.transaction_id, result.status, result.reference_id)
    if settled is None:
        logger.info(
            "Ignoring %s webhook for %s: already %s",
            provider_name,
            tx.transaction_id,
            tx.status,
        )
        raise AppException(
            status_code=409,
            code=ErrorCode.PAYMENT_STATE_CONFLICT,
            message="Payment already settled",
            details={"transaction_id": tx.transaction_id, "status": tx.status},
        )

    logger.info("Payment %s settled as %s", settled.transaction_id, settled.status)
    if result.status is PaymentStatus.SUCCESS and settled.order_id:
        await mark_order_paid(settled.order_id)

    return {
        "processed": True,
        "transaction_id": settled.transaction_id,
        "status": settled.status,
    }
