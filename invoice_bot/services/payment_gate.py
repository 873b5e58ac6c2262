"""
Payment gate for Telegram Stars.

Payment requests carry an opaque payload ``<purpose>:<subject id>:<ms>``.
``draft`` payloads point at a user's in-memory invoice draft, ``regen``
payloads at a stored invoice whose document is rendered again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from invoice_bot.core.enums import PaymentPurpose
from invoice_bot.core.exceptions import ValidationError
from invoice_bot.schemas import PaymentRecord

logger = logging.getLogger(__name__)

PAYMENT_TITLE = "Invoice PDF Generation"
PAYMENT_DESCRIPTION = "Generate professional invoice PDF"
REGENERATE_TITLE = "Invoice PDF Regeneration"
PRICE_LABEL = "PDF Generation"


@dataclass(frozen=True)
class PaymentReference:
    purpose: PaymentPurpose
    subject_id: int
    issued_ms: int

    @property
    def payload(self) -> str:
        return f"{self.purpose.value}:{self.subject_id}:{self.issued_ms}"


@dataclass(frozen=True)
class PaymentReceipt:
    """What the chat transport reports for a successful payment."""

    payload: str
    telegram_payment_charge_id: str
    total_amount: int
    currency: str
    provider_payment_charge_id: str | None = None


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def build_reference(purpose: PaymentPurpose, subject_id: int, now: datetime) -> str:
    return PaymentReference(purpose=purpose, subject_id=subject_id, issued_ms=_epoch_ms(now)).payload


def parse_reference(payload: str | None) -> PaymentReference:
    """Parse a payload produced by ``build_reference``."""
    parts = (payload or "").split(":")
    if len(parts) != 3:
        raise ValidationError("Invalid invoice data")
    purpose_value, subject, issued = parts
    try:
        purpose = PaymentPurpose(purpose_value)
        return PaymentReference(purpose=purpose, subject_id=int(subject), issued_ms=int(issued))
    except ValueError as exc:
        raise ValidationError("Invalid invoice data") from exc


def is_expired(requested_at: datetime | None, now: datetime, timeout: timedelta) -> bool:
    return requested_at is not None and now - requested_at >= timeout


def check_refund(payment: PaymentRecord | None, user_id: int, now: datetime, window_hours: int) -> PaymentRecord:
    """Return the payment if ``user_id`` may refund it now, else raise ValidationError."""
    if payment is None or payment.user_id != user_id:
        raise ValidationError("Payment not found or you don't have permission to refund it.")
    if payment.refunded:
        raise ValidationError("This payment has already been refunded.")
    if payment.created_at is not None and now - payment.created_at > timedelta(hours=window_hours):
        raise ValidationError(
            f"Refund window has expired. Refunds are only available within {window_hours} hours of payment."
        )
    return payment
