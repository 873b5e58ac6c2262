"""Enums for the invoice bot."""

from enum import Enum


class PaymentStatus(Enum):
    """Lifecycle of a recorded Telegram Stars payment."""

    COMPLETED = "completed"
    REFUNDED = "refunded"


class StorageBackend(Enum):
    """Where rendered invoice documents are stored."""

    LOCAL = "local"
    S3 = "s3"


class PaymentPurpose(Enum):
    """Prefix of the opaque payment payload sent to Telegram."""

    DRAFT = "draft"
    REGENERATE = "regen"


# Convenience accessors for common values
PAYMENT_COMPLETED = PaymentStatus.COMPLETED.value
PAYMENT_REFUNDED = PaymentStatus.REFUNDED.value
