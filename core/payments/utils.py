from __future__ import annotations

import hashlib
import hmac
import json
import logging
import uuid
from typing import Any, Iterable, Mapping

from core.payments.errors import ValidationError
from core.payments.types import PaymentStatus

logger = logging.getLogger(__name__)

GENERIC_SUCCESS_STATUSES = frozenset({"success", "completed"})
GENERIC_FAILED_STATUSES = frozenset({"failed", "rejected", "declined", "cancelled", "error"})


def generate_transaction_id(prefix: str = "TXN") -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def compute_signature(secret: str, body: bytes | str) -> str:
    raw = body.encode("utf-8") if isinstance(body, str) else body
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def signature_matches(secret: str, body: bytes | str, provided: str | None) -> bool:
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), (provided or "").encode("utf-8"))


def header_value(headers: Mapping[str, str], names: Iterable[str]) -> str | None:
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value:
            return value
    return None


def webhook_signature_accepted(
    *,
    provider: str,
    secret: str | None,
    body: bytes,
    headers: Mapping[str, str],
    header_names: Iterable[str],
) -> bool:
    """Check a callback signature; no configured secret means verification is skipped."""
    if not secret:
        return True

    provided = header_value(headers, header_names)
    if signature_matches(secret, body, provided):
        return True

    logger.warning("Rejected %s webhook: signature %s", provider, "mismatch" if provided else "missing")
    return False


def parse_webhook_body(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise ValidationError("body", "Webhook body must be valid JSON") from err

    if not isinstance(payload, dict):
        raise ValidationError("body", "Webhook body must be a JSON object")
    return payload


def lookup_status(
    value: Any,
    *,
    success: frozenset[str] = GENERIC_SUCCESS_STATUSES,
    failed: frozenset[str] = GENERIC_FAILED_STATUSES,
) -> PaymentStatus:
    normalized = str(value if value is not None else "").strip().lower()
    if normalized in success:
        return PaymentStatus.SUCCESS
    if normalized in failed:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def first_present(*values: Any) -> str | None:
    for value in values:
        if value is not None and value != "":
            return str(value)
    return None


def dig(payload: Any, *path: str) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
