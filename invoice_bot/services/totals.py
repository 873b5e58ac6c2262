"""
VAT and totals calculator.

All arithmetic is exact ``Decimal``; rounding to cents happens only when a
value is formatted or persisted (see ``utils.formatters.round_money``).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from invoice_bot.core.exceptions import ComputationError

HUNDRED = Decimal(100)
# Largest value the Numeric(12, 2) invoice amount columns hold.
MAX_STORED_AMOUNT = Decimal("9999999999.99")


class TaxableLine(Protocol):
    quantity: Decimal
    unit_price: Decimal
    vat_rate: int


@dataclass(frozen=True)
class VatBreakdownEntry:
    rate: int
    vat_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    vat_by_rate: tuple[VatBreakdownEntry, ...]
    total: Decimal

    @property
    def vat_breakdown(self) -> tuple[VatBreakdownEntry, ...]:
        """Entries for non-zero rates only, in order of first appearance."""
        return tuple(entry for entry in self.vat_by_rate if entry.rate > 0)

    @property
    def vat_total(self) -> Decimal:
        return sum((entry.vat_amount for entry in self.vat_by_rate), Decimal(0))


def net_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return Decimal(quantity) * Decimal(unit_price)


def line_vat(quantity: Decimal, unit_price: Decimal, vat_rate: int) -> Decimal:
    return net_amount(quantity, unit_price) * Decimal(vat_rate) / HUNDRED


def line_total(quantity: Decimal, unit_price: Decimal, vat_rate: int) -> Decimal:
    """Gross amount of one line: quantity * unit price * (1 + rate/100)."""
    return net_amount(quantity, unit_price) + line_vat(quantity, unit_price, vat_rate)


def compute_totals(lines: Iterable[TaxableLine]) -> InvoiceTotals:
    """Subtotal, VAT grouped by rate and grand total of an ordered line list.

    Always re-derives from quantity/unit price/rate; any cached per-line
    total is ignored.
    """
    subtotal = Decimal(0)
    vat_by_rate: dict[int, Decimal] = {}
    count = 0
    for line in lines:
        count += 1
        subtotal += net_amount(line.quantity, line.unit_price)
        # dict keeps insertion order, i.e. first appearance of each rate
        vat_by_rate[line.vat_rate] = vat_by_rate.get(line.vat_rate, Decimal(0)) + line_vat(
            line.quantity, line.unit_price, line.vat_rate
        )
    if count == 0:
        raise ComputationError("No items added to invoice. Please add at least one item.")

    entries = tuple(VatBreakdownEntry(rate=rate, vat_amount=amount) for rate, amount in vat_by_rate.items())
    total = subtotal + sum((entry.vat_amount for entry in entries), Decimal(0))
    return InvoiceTotals(subtotal=subtotal, vat_by_rate=entries, total=total)
