from __future__ import annotations

from datetime import date
from decimal import Decimal

from invoice_bot.utils.formatters import (
    add_days,
    format_address,
    format_amount,
    format_client_name,
    format_currency,
    format_date,
    format_product_name,
    format_quantity,
    or_not_set,
    round_money,
    truncate_text,
)


def test_round_money_rounds_half_up():
    assert round_money(Decimal("0.005")) == Decimal("0.01")
    assert round_money(Decimal("2.344")) == Decimal("2.34")


def test_amount_and_currency_formatting():
    assert format_amount(Decimal("1234.5")) == "1234.50"
    assert format_currency(Decimal("1234.5")) == "€1,234.50"
    assert format_currency(Decimal("10"), "USD") == "$10.00"
    assert format_currency(Decimal("10"), "SEK") == "SEK 10.00"


def test_format_quantity_drops_trailing_zeros():
    assert format_quantity(Decimal("2.0000")) == "2"
    assert format_quantity(Decimal("1.50")) == "1.5"
    assert format_quantity(Decimal("100")) == "100"


def test_dates():
    assert format_date(date(2025, 1, 31)) == "31.01.2025"
    assert add_days(date(2025, 1, 1), 30) == date(2025, 1, 31)


def test_names_and_addresses():
    assert format_client_name("Acme", "Estonia") == "Acme (Estonia)"
    assert format_client_name("Acme") == "Acme"
    assert format_product_name("Hosting", Decimal("50")) == "Hosting - €50.00"
    assert format_product_name("Hosting") == "Hosting"
    assert format_address("Narva mnt 5", "Tallinn", "10117") == "Narva mnt 5, 10117 Tallinn"
    assert format_address(None, "Tallinn", None) == "Tallinn"


def test_truncate_and_placeholder():
    assert truncate_text("short", 10) == "short"
    assert truncate_text("a" * 40, 30) == "a" * 27 + "..."
    assert or_not_set("") == "Not set"
    assert or_not_set("EE123") == "EE123"
