from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from invoice_bot.core.enums import PaymentPurpose
from invoice_bot.core.exceptions import ValidationError
from invoice_bot.schemas import PaymentRecord
from invoice_bot.services.payment_gate import build_reference, check_refund, is_expired, parse_reference

NOW = datetime(2026, 3, 14, 10, 0, 0)


def _payment(**overrides) -> PaymentRecord:
    fields = dict(
        id=1,
        user_id=1001,
        invoice_id=5,
        telegram_payment_charge_id="charge-1",
        amount=25,
        currency="XTR",
        status="completed",
        created_at=NOW,
    )
    fields.update(overrides)
    return PaymentRecord(**fields)


def test_reference_round_trip():
    payload = build_reference(PaymentPurpose.DRAFT, 1001, NOW)

    reference = parse_reference(payload)

    assert payload.startswith("draft:1001:")
    assert reference.purpose is PaymentPurpose.DRAFT
    assert reference.subject_id == 1001
    assert reference.payload == payload


def test_regenerate_reference_points_at_invoice():
    reference = parse_reference(build_reference(PaymentPurpose.REGENERATE, 42, NOW))

    assert reference.purpose is PaymentPurpose.REGENERATE
    assert reference.subject_id == 42


@pytest.mark.parametrize("payload", [None, "", "invoice_1001_123", "draft:abc:1", "refund:1:1", "draft:1:2:3"])
def test_parse_reference_rejects_malformed_payloads(payload):
    with pytest.raises(ValidationError, match="Invalid invoice data"):
        parse_reference(payload)


def test_is_expired():
    timeout = timedelta(minutes=30)

    assert is_expired(None, NOW, timeout) is False
    assert is_expired(NOW, NOW + timedelta(minutes=29), timeout) is False
    assert is_expired(NOW, NOW + timedelta(minutes=30), timeout) is True


def test_check_refund_accepts_recent_payment_of_owner():
    payment = _payment()

    assert check_refund(payment, 1001, NOW + timedelta(hours=23), 24) is payment


def test_check_refund_rejects_foreign_or_missing_payment():
    with pytest.raises(ValidationError, match="Payment not found"):
        check_refund(None, 1001, NOW, 24)
    with pytest.raises(ValidationError, match="Payment not found"):
        check_refund(_payment(), 2002, NOW, 24)


def test_check_refund_rejects_refunded_payment():
    with pytest.raises(ValidationError, match="already been refunded"):
        check_refund(_payment(refunded=True), 1001, NOW, 24)


def test_check_refund_rejects_expired_window():
    with pytest.raises(ValidationError, match="within 24 hours"):
        check_refund(_payment(), 1001, NOW + timedelta(hours=25), 24)
