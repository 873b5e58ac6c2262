"""Deterministic validators and parsers for chat input."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from invoice_bot.core.exceptions import ValidationError

SKIP_KEYWORD = "skip"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[+]?[\d\s\-()]+$")
_IBAN_RE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{4}[0-9]{7}[A-Z0-9]{0,16}$")
_DECIMAL_RE = re.compile(r"^[+]?\d+(\.\d+)?$")
_INTEGER_RE = re.compile(r"^[+]?\d+$")

# Matches the Numeric(12, 4) line columns.
MAX_DECIMAL_PLACES = 4
MAX_INTEGER_DIGITS = 8
MONEY_PLACES = 2


def sanitize_input(value: str | None, max_len: int = 500) -> str:
    """Trim chat input and drop markup characters before storage/display."""
    if value is None:
        return ""
    cleaned = str(value).replace("\x00", "").strip()
    cleaned = re.sub(r"[<>]", "", cleaned)
    return cleaned[:max_len]


def is_skip(value: str) -> bool:
    return value.strip().lower() == SKIP_KEYWORD


def parse_required_text(value: str, field: str) -> str:
    cleaned = sanitize_input(value)
    if not cleaned:
        raise ValidationError(f"{field.capitalize()} is required. Please enter {field}")
    return cleaned


def _parse_decimal(value: str, field: str, requirement: str, places: int = MAX_DECIMAL_PLACES) -> Decimal:
    """Parse a plain decimal that fits the stored column scale exactly."""
    cleaned = sanitize_input(value)
    if not _DECIMAL_RE.match(cleaned):
        raise ValidationError(f"Invalid {field}. Please enter {requirement}")
    integer_part, _, fraction = cleaned.lstrip("+").partition(".")
    if len(integer_part.lstrip("0")) > MAX_INTEGER_DIGITS:
        raise ValidationError(f"Invalid {field}. Please enter at most {MAX_INTEGER_DIGITS} digits before the decimal point")
    if len(fraction.rstrip("0")) > places:
        raise ValidationError(f"Invalid {field}. Please enter at most {places} decimal places")
    try:
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid {field}. Please enter {requirement}") from exc


def parse_positive_decimal(value: str, field: str) -> Decimal:
    amount = _parse_decimal(value, field, "a positive number")
    if amount <= 0:
        raise ValidationError(f"Invalid {field}. Please enter a positive number")
    return amount


def parse_non_negative_decimal(value: str, field: str, places: int = MAX_DECIMAL_PLACES) -> Decimal:
    return _parse_decimal(value, field, "a number of 0 or more (e.g. 99.99)", places)


def parse_vat_rate(value: str, field: str = "VAT rate") -> int:
    cleaned = sanitize_input(value).rstrip("%").strip()
    if not _INTEGER_RE.match(cleaned) or not 0 <= int(cleaned) <= 100:
        raise ValidationError(f"Invalid {field}. Please enter a whole number between 0 and 100")
    return int(cleaned)


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def validate_phone(phone: str) -> bool:
    return bool(_PHONE_RE.match(phone)) and len(re.sub(r"\D", "", phone)) >= 7


def validate_iban(iban: str) -> bool:
    return bool(_IBAN_RE.match(normalize_iban(iban)))


def normalize_iban(iban: str) -> str:
    return re.sub(r"\s", "", iban).upper()


def parse_email(value: str, field: str = "email address") -> str:
    cleaned = sanitize_input(value)
    if not validate_email(cleaned):
        raise ValidationError(f"Invalid email format. Please enter a valid {field}")
    return cleaned


def parse_phone(value: str, field: str = "phone number") -> str:
    cleaned = sanitize_input(value)
    if not validate_phone(cleaned):
        raise ValidationError(f"Invalid phone number format. Please enter a valid {field}")
    return cleaned


def parse_iban(value: str, field: str = "IBAN") -> str:
    cleaned = sanitize_input(value)
    if not validate_iban(cleaned):
        raise ValidationError(f"Invalid IBAN format. Please enter a valid {field}")
    return normalize_iban(cleaned)
