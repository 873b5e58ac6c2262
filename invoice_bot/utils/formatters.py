"""Display formatting for chat messages and documents."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}
NOT_SET = "Not set"


def round_money(amount: Decimal) -> Decimal:
    """Round to cents; the only place money precision is dropped."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    """Plain two-decimal amount as printed on the PDF, e.g. ``1234.50``."""
    return f"{round_money(amount):.2f}"


def format_currency(amount: Decimal, currency: str = "EUR") -> str:
    """Chat formatting, e.g. ``€1,234.50``."""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_quantity(quantity: Decimal) -> str:
    """Drop trailing zeros: 2.000 -> 2, 1.50 -> 1.5."""
    text = f"{Decimal(quantity).normalize():f}"
    return text


def format_percent(rate: int) -> str:
    return f"{rate}%"


def format_date(value: date) -> str:
    return value.strftime("%d.%m.%Y")


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def format_address(address: str | None, city: str | None, zip_code: str | None) -> str:
    locality = " ".join(part for part in (zip_code, city) if part)
    return ", ".join(part for part in (address, locality) if part)


def format_client_name(name: str, country: str | None = None) -> str:
    return f"{name} ({country})" if country else name


def format_product_name(name: str, default_price: Decimal | None = None, currency: str = "EUR") -> str:
    price = f" - {format_currency(default_price, currency)}" if default_price else ""
    return f"{name}{price}"


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def or_not_set(value: object | None) -> str:
    if value is None or value == "":
        return NOT_SET
    return str(value)
