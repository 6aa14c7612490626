from __future__ import annotations

import hashlib
import hmac

import pytest

from core.payments.errors import ValidationError
from core.payments.types import PaymentStatus
from core.payments.utils import (
    compute_signature,
    generate_transaction_id,
    header_value,
    lookup_status,
    parse_webhook_body,
    signature_matches,
    webhook_signature_accepted,
)

BODY = b'{"transaction_id":"ISA-1","status":"success"}'


def test_compute_signature_is_hex_hmac_sha256_of_raw_body():
    expected = hmac.new(b"shh", BODY, hashlib.sha256).hexdigest()

    assert compute_signature("shh", BODY) == expected
    assert compute_signature("shh", BODY.decode()) == expected


def test_signature_matches_rejects_tampered_body_and_missing_signature():
    signature = compute_signature("shh", BODY)

    assert signature_matches("shh", BODY, signature) is True
    assert signature_matches("shh", BODY + b" ", signature) is False
    assert signature_matches("shh", BODY, None) is False


def test_header_value_is_case_insensitive_and_tries_names_in_order():
    headers = {"X-MyPlug-Signature": "second"}

    assert header_value(headers, ("x-pesapal-signature", "x-myplug-signature")) == "second"
    assert header_value(headers, ("x-isa-signature",)) is None


def test_webhook_signature_skipped_without_secret():
    assert webhook_signature_accepted(
        provider="mpesa",
        secret=None,
        body=BODY,
        headers={},
        header_names=("x-isa-signature",),
    )


def test_webhook_signature_enforced_with_secret():
    good = {"X-ISA-Signature": compute_signature("shh", BODY)}

    assert webhook_signature_accepted(
        provider="mpesa", secret="shh", body=BODY, headers=good, header_names=("x-isa-signature",)
    )
    assert not webhook_signature_accepted(
        provider="mpesa", secret="shh", body=BODY, headers={}, header_names=("x-isa-signature",)
    )
    assert not webhook_signature_accepted(
        provider="mpesa",
        secret="other",
        body=BODY,
        headers=good,
        header_names=("x-isa-signature",),
    )


@pytest.mark.parametrize("body", [b"not-json", b"[1, 2]", b"\xff\xfe"])
def test_parse_webhook_body_requires_json_object(body: bytes):
    with pytest.raises(ValidationError) as exc_info:
        parse_webhook_body(body)

    assert exc_info.value.field == "body"


def test_lookup_status_is_case_insensitive_with_pending_default():
    assert lookup_status("SUCCESS") is PaymentStatus.SUCCESS
    assert lookup_status(" Declined ") is PaymentStatus.FAILED
    assert lookup_status("processing") is PaymentStatus.PENDING
    assert lookup_status(None) is PaymentStatus.PENDING


def test_generate_transaction_id_uses_prefix_and_is_unique():
    first = generate_transaction_id("ISA")
    second = generate_transaction_id("ISA")

    assert first.startswith("ISA-")
    assert len(first.split("-", 1)[1]) == 32
    assert first != second


@pytest.mark.parametrize(
    ("secret", "body"),
    [
        ("s", b'{"status":"success"}'),
        ("shh", b""),
        ("webhook-secret", '{"amount": 100, "status": "failed"}'.encode()),
    ],
)
def test_compute_signature_matches_reference_hmac(secret: str, body: bytes):
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

    assert compute_signature(secret, body) == expected
    assert signature_matches(secret, body, expected) is True
    assert signature_matches(secret, body, expected.upper()) is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Success", PaymentStatus.SUCCESS),
        ("completed", PaymentStatus.SUCCESS),
        ("cancelled", PaymentStatus.FAILED),
        ("ERROR", PaymentStatus.FAILED),
        ("awaiting_otp", PaymentStatus.PENDING),
        ("", PaymentStatus.PENDING),
    ],
)
def test_lookup_status_generic_vocabulary(raw: str, expected: PaymentStatus):
    assert lookup_status(raw) is expected
