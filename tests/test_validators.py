from __future__ import annotations

from decimal import Decimal

import pytest

from invoice_bot.core.exceptions import ValidationError
from invoice_bot.utils.validators import (
    MONEY_PLACES,
    is_skip,
    parse_email,
    parse_iban,
    parse_non_negative_decimal,
    parse_phone,
    parse_positive_decimal,
    parse_required_text,
    parse_vat_rate,
    sanitize_input,
)


def test_sanitize_input_strips_null_markup_and_trims():
    assert sanitize_input("  <b>hello\x00world</b>  ") == "bhelloworld/b"
    assert sanitize_input(None) == ""
    assert len(sanitize_input("x" * 900)) == 500


def test_is_skip_is_case_insensitive():
    assert is_skip(" SKIP ") is True
    assert is_skip("skipped") is False


def test_parse_required_text_names_the_field():
    assert parse_required_text("  Acme  ", "client name") == "Acme"
    with pytest.raises(ValidationError, match="Client name is required. Please enter client name"):
        parse_required_text("   ", "client name")


def test_parse_positive_decimal():
    assert parse_positive_decimal("2.5", "quantity") == Decimal("2.5")
    for value in ("0", "-1", "1,5", "abc", "1e3"):
        with pytest.raises(ValidationError, match="Invalid quantity. Please enter a positive number"):
            parse_positive_decimal(value, "quantity")


def test_parse_non_negative_decimal_accepts_zero():
    assert parse_non_negative_decimal("0", "price") == Decimal("0")
    assert parse_non_negative_decimal("99.99", "price") == Decimal("99.99")
    with pytest.raises(ValidationError, match="Invalid price"):
        parse_non_negative_decimal("-0.01", "price")


def test_decimal_parsers_only_accept_what_the_columns_store():
    assert parse_positive_decimal("1.2345", "quantity") == Decimal("1.2345")
    assert parse_positive_decimal("1.50000", "quantity") == Decimal("1.5")
    assert parse_non_negative_decimal("99999999.9999", "price") == Decimal("99999999.9999")
    with pytest.raises(ValidationError, match="Invalid quantity. Please enter at most 4 decimal places"):
        parse_positive_decimal("1.00004", "quantity")
    with pytest.raises(ValidationError, match="Invalid quantity. Please enter at most 8 digits before the decimal point"):
        parse_positive_decimal("999999999", "quantity")
    with pytest.raises(ValidationError, match="Invalid price. Please enter at most 2 decimal places"):
        parse_non_negative_decimal("9.999", "price", places=MONEY_PLACES)


@pytest.mark.parametrize("value, expected", [("0", 0), ("20", 20), ("100", 100), ("9%", 9)])
def test_parse_vat_rate_accepts_whole_percentages(value, expected):
    assert parse_vat_rate(value) == expected


@pytest.mark.parametrize("value", ["-1", "101", "20.5", "twenty", ""])
def test_parse_vat_rate_rejects_other_values(value):
    with pytest.raises(ValidationError, match="Invalid VAT rate"):
        parse_vat_rate(value)


def test_contact_parsers():
    assert parse_email("billing@northwind.ee") == "billing@northwind.ee"
    assert parse_phone("+372 (5) 555-1234") == "+372 (5) 555-1234"
    assert parse_iban("ee38 2200 2210 2014 5685") == "EE382200221020145685"
    with pytest.raises(ValidationError, match="Invalid email format"):
        parse_email("billing@")
    with pytest.raises(ValidationError, match="Invalid phone number format"):
        parse_phone("12-34")
    with pytest.raises(ValidationError, match="Invalid IBAN format"):
        parse_iban("NOT-AN-IBAN")
