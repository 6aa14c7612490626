from __future__ import annotations

import time
from typing import Any

from pymongo import ReturnDocument

from core.database import db
from core.payments.types import PaymentStatus
from schemas.payment_schema import PaymentTransactionCreate, PaymentTransactionOut

_PAYMENT_INDEXES_READY = False


async def _ensure_payment_indexes() -> None:
    global _PAYMENT_INDEXES_READY
    if _PAYMENT_INDEXES_READY:
        return
    await db.payment_transactions.create_index("reference_id", name="idx_payment_reference_id", sparse=True)
    await db.payment_transactions.create_index("user_id", name="idx_payment_user_id")
    await db.payment_transactions.create_index("order_id", name="idx_payment_order_id", sparse=True)
    _PAYMENT_INDEXES_READY = True


async def create_payment_transaction(payload: PaymentTransactionCreate) -> PaymentTransactionOut:
    await _ensure_payment_indexes()
    document = payload.model_dump(exclude={"transaction_id"})
    document["_id"] = payload.transaction_id
    await db.payment_transactions.insert_one(document)
    return PaymentTransactionOut(**document)


async def get_payment_transaction_by_id(transaction_id: str) -> PaymentTransactionOut | None:
    await _ensure_payment_indexes()
    row = await db.payment_transactions.find_one({"_id": transaction_id})
    if row is None:
        return None
    return PaymentTransactionOut(**row)


async def get_payment_transaction_by_reference(reference_id: str) -> PaymentTransactionOut | None:
    await _ensure_payment_indexes()
    row = await db.payment_transactions.find_one({"reference_id": reference_id})
    if row is None:
        return None
    return PaymentTransactionOut(**row)


async def record_reference_id(transaction_id: str, reference_id: str) -> PaymentTransactionOut | None:
    await _ensure_payment_indexes()
    row = await db.payment_transactions.find_one_and_update(
        {"_id": transaction_id},
        {"$set": {"reference_id": reference_id, "updated_at": int(time.time())}},
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        return None
    return PaymentTransactionOut(**row)


async def settle_payment_transaction(
    transaction_id: str,
    status: PaymentStatus,
    reference_id: str | None = None,
) -> PaymentTransactionOut | None:
    """Move a pending transaction to a terminal status.

    Returns None when the transaction does not exist or is no longer pending, so a
    status can only be written once.
    """
    await _ensure_payment_indexes()
    changes: dict[str, Any] = {"status": status.value, "updated_at": int(time.time())}
    if reference_id:
        changes["reference_id"] = reference_id

    row = await db.payment_transactions.find_one_and_update(
        {"_id": transaction_id, "status": PaymentStatus.PENDING.value},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        return None
    return PaymentTransactionOut(**row)
